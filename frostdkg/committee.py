"""
The committee: the coordinator's view of a DKG run.

Every participant broadcasts a :class:`PeerCommitment`: its Feldman
commitment plus a proof of knowledge of the constant term.  The
committee admits a peer only if

- its identifier is new (neither admitted nor previously rejected),
- it belongs to the configured membership, when one was given,
- its commitment has exactly  t  points, and
- its proof of knowledge verifies.

Rejected peers are recorded as :class:`~frostdkg.errors.VerificationFailure`
events and never re-examined.  Admitted peers are never removed, and
because the group key is a commutative sum the admission order is
irrelevant.  Admission is serialized by a lock so two concurrent admits
cannot both pass the duplicate-id check; readers receive snapshots.
Once share exchange starts the committee is closed and the verified set
is final.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, Iterable, Mapping, Optional

from .curve import Point, POINT_BYTES, SCALAR_BYTES
from .commitment import Commitment, combine
from .config import ThresholdParams
from .errors import VerificationFailure
from .ids import ParticipantId, ID_BYTES
from .keys import PublicKeyPackage
from .proofs import ProofOfKnowledge

logger = logging.getLogger(__name__)

RejectionCallback = Callable[[VerificationFailure], None]


# ── messages and records ────────────────────────────────────────────────

@dataclass(frozen=True)
class PeerCommitment:
    """Broadcast round-1 DKG message."""

    participant_id: ParticipantId
    commitment: Commitment
    proof: ProofOfKnowledge

    def to_bytes(self) -> bytes:
        return (
            self.participant_id.encode()
            + self.proof.to_bytes()
            + self.commitment.to_bytes()
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> PeerCommitment:
        proof_end = ID_BYTES + POINT_BYTES + SCALAR_BYTES
        if len(data) < proof_end:
            raise ValueError("peer commitment encoding too short")
        return cls(
            participant_id=ParticipantId.decode(data[:ID_BYTES]),
            proof=ProofOfKnowledge.from_bytes(data[ID_BYTES:proof_end]),
            commitment=Commitment.from_bytes(data[proof_end:]),
        )


@dataclass(frozen=True)
class PeerRecord:
    """The committee's view of one peer."""

    participant_id: ParticipantId
    commitment: Commitment
    proof: ProofOfKnowledge
    verified: bool


# ── committee ───────────────────────────────────────────────────────────

class Committee:
    """
    Collects and validates DKG commitments for a  t-of-n  committee.

    Parameters
    ----------
    n : int
        Committee size.
    t : int
        Threshold, ``1 ≤ t ≤ n``.
    participant_ids : iterable of int, optional
        Restrict admission to these identifiers.  Without it any valid
        identifier is accepted until ``n`` peers are verified.
    on_reject : callable, optional
        Invoked with each :class:`VerificationFailure` event.
    """

    def __init__(
        self,
        n: int,
        t: int,
        participant_ids: Optional[Iterable[int]] = None,
        on_reject: Optional[RejectionCallback] = None,
    ) -> None:
        self.params = ThresholdParams.create(n, t, participant_ids)
        self._members: Optional[FrozenSet[ParticipantId]] = (
            frozenset(self.params.participant_ids)
            if participant_ids is not None else None
        )
        self._on_reject = on_reject
        self._lock = threading.Lock()
        self._peers: Dict[ParticipantId, PeerRecord] = {}
        self._rejections: Dict[ParticipantId, VerificationFailure] = {}
        self._closed = False

    @classmethod
    def from_params(
        cls,
        params: ThresholdParams,
        on_reject: Optional[RejectionCallback] = None,
    ) -> Committee:
        return cls(params.n, params.t, params.participant_ids, on_reject)

    # ── admission ──────────────────────────────────────────────────────

    def admit(self, peer: PeerCommitment) -> bool:
        """
        Validate and admit ``peer``.  Returns True if it was added.

        A duplicate of an already admitted id is refused without touching
        the existing record; every other refusal is recorded as a
        rejection for that id.
        """
        pid = ParticipantId(peer.participant_id)

        # stateless checks run outside the lock
        problem: Optional[str] = None
        if len(peer.commitment) != self.params.t:
            problem = (
                f"malformed commitment: {len(peer.commitment)} points, "
                f"expected {self.params.t}"
            )
        elif not peer.proof.verify(pid, peer.commitment.constant_term):
            problem = "proof of knowledge does not verify"

        event: Optional[VerificationFailure] = None
        with self._lock:
            if pid in self._peers:
                event = VerificationFailure(pid, "duplicate participant id")
            elif pid in self._rejections:
                logger.debug("ignoring previously rejected participant %s", pid)
                return False
            else:
                if self._closed:
                    problem = "admission closed"
                elif self._members is not None and pid not in self._members:
                    problem = "not a committee member"
                elif len(self._peers) >= self.params.n:
                    problem = "committee is full"
                if problem is not None:
                    event = VerificationFailure(pid, problem)
                    self._rejections[pid] = event
                else:
                    self._peers[pid] = PeerRecord(
                        participant_id=pid,
                        commitment=peer.commitment,
                        proof=peer.proof,
                        verified=True,
                    )
                    logger.info(
                        "admitted participant %s (%d verified, threshold %d)",
                        pid, len(self._peers), self.params.t,
                    )

        if event is None:
            return True
        logger.warning("rejected participant %s: %s", pid, event.reason)
        if self._on_reject is not None:
            self._on_reject(event)
        return False

    def close(self) -> Mapping[ParticipantId, PeerRecord]:
        """
        Freeze the verified set and return it.

        Called when share exchange starts.  Afterwards every new id is
        rejected, so the group key can no longer move away from the key
        packages derived from this set.  Idempotent.
        """
        with self._lock:
            if not self._closed:
                self._closed = True
                logger.info(
                    "admission closed with %d verified participants", len(self._peers),
                )
            return MappingProxyType(dict(self._peers))

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    # ── queries ────────────────────────────────────────────────────────

    @property
    def threshold(self) -> int:
        return self.params.t

    @property
    def committee_size(self) -> int:
        return self.params.n

    def is_ready(self) -> bool:
        """True iff at least  t  peers (self included) are verified."""
        with self._lock:
            return len(self._peers) >= self.params.t

    def verified_peers(self) -> Mapping[ParticipantId, PeerRecord]:
        """Read-only snapshot of the verified peer set."""
        with self._lock:
            return MappingProxyType(dict(self._peers))

    @property
    def rejections(self) -> Mapping[ParticipantId, VerificationFailure]:
        with self._lock:
            return MappingProxyType(dict(self._rejections))

    def group_public_key(self) -> Optional[Point]:
        """Y = Σ_i C_{i,0}  over verified peers, or None below threshold."""
        peers = self.verified_peers()
        if len(peers) < self.params.t:
            return None
        return Point.sum_points(r.commitment.constant_term for r in peers.values())

    def public_key_package(self) -> Optional[PublicKeyPackage]:
        """
        Group key plus every verified participant's verification share
        X_j = Σ_i F_i(j), or None below threshold.
        """
        peers = self.verified_peers()
        if len(peers) < self.params.t:
            return None
        return public_key_package_from(
            {pid: r.commitment for pid, r in peers.items()}, self.params.t,
        )

    def __repr__(self) -> str:
        return (
            f"Committee(t={self.params.t}, n={self.params.n}, "
            f"verified={len(self._peers)})"
        )


def public_key_package_from(
    commitments: Mapping[ParticipantId, Commitment],
    threshold: int,
) -> PublicKeyPackage:
    """Derive the public key package from a verified commitment set."""
    group = combine(commitments.values())
    return PublicKeyPackage(
        group_public_key=group.constant_term,
        verification_shares={pid: group.evaluate(pid) for pid in sorted(commitments)},
        threshold=threshold,
    )
