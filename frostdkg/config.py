"""
Threshold parameters for a committee.

A committee has  n  participants, each identified by a nonzero
:class:`~frostdkg.ids.ParticipantId`, and any  t  of them can sign:

    1 ≤ t ≤ n

The shared polynomial has degree  t - 1,  so every dealer commitment
carries exactly  t  points.  By default participants are numbered
1..n; explicit identifiers are accepted when the calling application
assigns its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from .errors import ConfigurationError
from .ids import ParticipantId


@dataclass(frozen=True)
class ThresholdParams:
    """
    Validated ``(n, t)`` configuration.

    Attributes
    ----------
    n : int
        Committee size.
    t : int
        Signing threshold; also the length of every commitment.
    participant_ids : tuple[ParticipantId, ...]
        The ``n`` identifiers, sorted.
    """

    n: int
    t: int
    participant_ids: Tuple[ParticipantId, ...] = field(default=())

    def __post_init__(self) -> None:
        for name in ("n", "t"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer")
        if self.n < 1:
            raise ConfigurationError("committee must have ≥ 1 participant")
        if not 1 <= self.t <= self.n:
            raise ConfigurationError(
                f"threshold {self.t} must satisfy 1 ≤ t ≤ n = {self.n}"
            )

        ids = self.participant_ids or tuple(range(1, self.n + 1))
        parsed = tuple(sorted(ParticipantId(i) for i in ids))
        if len(parsed) != self.n:
            raise ConfigurationError(
                f"expected {self.n} participant ids, got {len(parsed)}"
            )
        if len(set(parsed)) != len(parsed):
            raise ConfigurationError("participant ids must be unique")
        object.__setattr__(self, "participant_ids", parsed)

    # ── factories ──────────────────────────────────────────────────────

    @classmethod
    def create(
        cls,
        n: int,
        t: int,
        participant_ids: Optional[Iterable[int]] = None,
    ) -> ThresholdParams:
        return cls(n=n, t=t, participant_ids=tuple(participant_ids or ()))

    # ── queries ────────────────────────────────────────────────────────

    @property
    def polynomial_degree(self) -> int:
        return self.t - 1

    def is_member(self, participant_id: int) -> bool:
        return participant_id in self.participant_ids

    def __repr__(self) -> str:
        return f"ThresholdParams(t={self.t}, n={self.n})"
