"""
Long-lived key material produced by key generation.

These are the only artifacts meant to outlive a DKG run and to be
persisted across restarts:

- :class:`PublicKeyPackage`: group verification key  Y,  every
  participant's public verification share  X_j = x_j · G,  and  t.
- :class:`KeyPackage`: one participant's long-term secret share  x_j
  together with the public package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping

from .curve import Scalar, Point, G, POINT_BYTES, SCALAR_BYTES
from .ids import ParticipantId, ID_BYTES

_ENTRY_BYTES = ID_BYTES + POINT_BYTES


@dataclass(frozen=True)
class PublicKeyPackage:
    """Public output of a DKG run; identical for every participant."""

    group_public_key: Point
    verification_shares: Mapping[ParticipantId, Point]
    threshold: int

    def verification_share(self, participant_id: int) -> Point:
        try:
            return self.verification_shares[ParticipantId(participant_id)]
        except KeyError:
            raise KeyError(f"unknown participant {participant_id}") from None

    @property
    def participant_ids(self):
        return sorted(self.verification_shares)

    def to_bytes(self) -> bytes:
        parts = [
            self.group_public_key.to_bytes(),
            self.threshold.to_bytes(4, "big"),
            len(self.verification_shares).to_bytes(4, "big"),
        ]
        for pid in sorted(self.verification_shares):
            parts.append(ParticipantId(pid).encode())
            parts.append(self.verification_shares[pid].to_bytes())
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> PublicKeyPackage:
        head = POINT_BYTES + 8
        if len(data) < head:
            raise ValueError("public key package encoding too short")
        Y = Point.from_bytes(data[:POINT_BYTES])
        threshold = int.from_bytes(data[POINT_BYTES:POINT_BYTES + 4], "big")
        count = int.from_bytes(data[POINT_BYTES + 4:head], "big")
        if len(data) != head + count * _ENTRY_BYTES:
            raise ValueError("public key package length mismatch")
        shares: Dict[ParticipantId, Point] = {}
        for k in range(count):
            off = head + k * _ENTRY_BYTES
            pid = ParticipantId.decode(data[off:off + ID_BYTES])
            shares[pid] = Point.from_bytes(data[off + ID_BYTES:off + _ENTRY_BYTES])
        return cls(group_public_key=Y, verification_shares=shares,
                   threshold=threshold)


@dataclass(frozen=True)
class KeyPackage:
    """A participant's finalized key: secret share  x_j  plus public data."""

    participant_id: ParticipantId
    secret_share: Scalar = field(repr=False)
    public: PublicKeyPackage

    @property
    def group_public_key(self) -> Point:
        return self.public.group_public_key

    @property
    def threshold(self) -> int:
        return self.public.threshold

    @property
    def verification_share(self) -> Point:
        return self.public.verification_share(self.participant_id)

    def is_consistent(self) -> bool:
        """True iff  x_j · G  matches the published verification share."""
        return self.secret_share * G == self.verification_share

    def to_bytes(self) -> bytes:
        return (
            self.participant_id.encode()
            + self.secret_share.to_bytes()
            + self.public.to_bytes()
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> KeyPackage:
        if len(data) < ID_BYTES + SCALAR_BYTES:
            raise ValueError("key package encoding too short")
        return cls(
            participant_id=ParticipantId.decode(data[:ID_BYTES]),
            secret_share=Scalar.from_bytes(data[ID_BYTES:ID_BYTES + SCALAR_BYTES]),
            public=PublicKeyPackage.from_bytes(data[ID_BYTES + SCALAR_BYTES:]),
        )
