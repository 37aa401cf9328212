"""Participant identifiers."""

from __future__ import annotations

from .errors import ConfigurationError

MAX_PARTICIPANT_ID = 2**64 - 1
ID_BYTES = 8


class ParticipantId(int):
    """
    Nonzero 64-bit participant identifier.

    Also serves as the participant's evaluation point on every dealer's
    polynomial, which is why zero is forbidden: ``f(0)`` is the secret.
    """

    def __new__(cls, value: int) -> ParticipantId:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(
                f"participant id must be an integer, got {type(value).__name__}"
            )
        if value == 0:
            raise ConfigurationError("participant id must be nonzero")
        if not 0 < value <= MAX_PARTICIPANT_ID:
            raise ConfigurationError(
                f"participant id {int(value)} does not fit in 64 bits"
            )
        return super().__new__(cls, value)

    def encode(self) -> bytes:
        return int(self).to_bytes(ID_BYTES, "big")

    @classmethod
    def decode(cls, data: bytes) -> ParticipantId:
        if len(data) != ID_BYTES:
            raise ValueError(f"need {ID_BYTES} bytes, got {len(data)}")
        return cls(int.from_bytes(data, "big"))

    def __str__(self) -> str:
        return str(int(self))

    def __repr__(self) -> str:
        return f"ParticipantId({int(self)})"
