"""
Exception hierarchy for frostdkg.

Four failure classes are kept distinct so that callers can react to
each one differently:

- ``ConfigurationError``: invalid ``(n, t)`` or identifiers; fatal at
  construction, never retried.
- ``VerificationFailure``: a PoK, Feldman or partial-signature check
  failed; always attributable to a participant.
- ``QuorumError``: not enough verified peers or responding signers;
  fatal to the run/round but safe to retry with another set.
- ``ProtocolStateError``: an operation was invoked out of sequence.

No exception message carries a scalar value.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple


class FrostError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(FrostError, ValueError):
    """Invalid protocol parameters."""


class VerificationFailure(FrostError):
    """A cryptographic check attributable to one participant failed."""

    def __init__(self, participant_id: Optional[int], reason: str) -> None:
        self.participant_id = participant_id
        self.reason = reason
        super().__init__(f"participant {participant_id}: {reason}")


class InvalidPartialSignature(VerificationFailure):
    """One or more partial signatures failed the per-signer check."""

    def __init__(self, culprits: Iterable[int]) -> None:
        self.culprits: Tuple[int, ...] = tuple(sorted(int(c) for c in culprits))
        super().__init__(
            self.culprits[0] if self.culprits else None,
            f"invalid partial signature from {list(self.culprits)}",
        )


class QuorumError(FrostError):
    """Fewer than ``t`` participants are available."""

    retryable = True

    def __init__(self, required: int, available: int, what: str = "peers") -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"need at least {required} {what}, have {available}"
        )


class SignerDropout(QuorumError):
    """Committed signers did not respond; the round must be restarted."""

    def __init__(
        self,
        required: int,
        missing: Iterable[int],
        responders: Iterable[int],
    ) -> None:
        self.missing: Tuple[int, ...] = tuple(sorted(int(p) for p in missing))
        self.responders: Tuple[int, ...] = tuple(sorted(int(p) for p in responders))
        super().__init__(required, len(self.responders), "responding signers")
        self.args = (
            f"signers {list(self.missing)} committed but did not respond",
        )


class ProtocolStateError(FrostError, RuntimeError):
    """An operation was invoked in the wrong protocol state."""
