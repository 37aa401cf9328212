"""
Distributed key generation: the per-participant state machine.

Each participant acts as a dealer of a Feldman-VSS sharing of a random
secret and as a recipient of every other dealer's sharing.  A run goes
through four states:

    INITIALIZED ──publish()──▶ COMMITMENT_PUBLISHED
        ──exchange_shares(committee)──▶ SHARES_EXCHANGED
        ──finalize()──▶ FINALIZED

1. ``publish`` samples the secret polynomial  f_i,  its commitment and a
   proof of knowledge of  a_{i,0}.  The resulting :class:`PeerCommitment`
   is broadcast to the committee.
2. ``exchange_shares`` is gated on ``committee.is_ready()``.  It closes
   the committee to new peers, freezes the verified set, evaluates  f_i
   at every verified peer's index (its own included) and returns the
   private shares to deliver.
3. ``receive_share`` checks each incoming share against the sender's
   published commitment.  A failing share means the sender equivocated:
   the whole run is aborted, because a single bad share would corrupt the
   group key irrecoverably.
4. ``finalize`` requires a share from every peer in the frozen set, sums
   them into the long-term share  x_j = Σ_i f_i(j),  derives the public
   key package and destroys the polynomial.

Any failure moves the participant to ABORTED and discards its secret
material; an aborted run is never resumed.

References
----------
- Komlo, Goldberg (2020). "FROST: Flexible Round-Optimized Schnorr
  Threshold Signatures."  SAC 2020, §5.1.
- Pedersen (1991). "A Threshold Cryptosystem Without a Trusted Party."
  EUROCRYPT 1991.
- Gennaro, Jarecki, Krawczyk, Rabin (2007). "Secure Distributed Key
  Generation for Discrete-Log Based Cryptosystems."  J. Cryptology.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Optional, Set

from .curve import Scalar, Point, Rng, SCALAR_BYTES
from .commitment import Commitment
from .committee import Committee, PeerCommitment, public_key_package_from
from .config import ThresholdParams
from .errors import (
    FrostError, ProtocolStateError, QuorumError, VerificationFailure,
)
from .ids import ParticipantId, ID_BYTES
from .keys import KeyPackage, PublicKeyPackage
from .polynomial import SecretPolynomial
from .proofs import ProofOfKnowledge

logger = logging.getLogger(__name__)


# ── data structures ─────────────────────────────────────────────────────

class DKGState(Enum):
    INITIALIZED = auto()
    COMMITMENT_PUBLISHED = auto()
    SHARES_EXCHANGED = auto()
    FINALIZED = auto()
    ABORTED = auto()


@dataclass(frozen=True)
class Share:
    """Private share  s_{i→j} = f_i(j),  sent from ``sender`` to ``recipient``."""

    sender: ParticipantId
    recipient: ParticipantId
    value: Scalar = field(repr=False)

    def to_bytes(self) -> bytes:
        return self.sender.encode() + self.recipient.encode() + self.value.to_bytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> Share:
        if len(data) != 2 * ID_BYTES + SCALAR_BYTES:
            raise ValueError(
                f"expected {2 * ID_BYTES + SCALAR_BYTES} bytes, got {len(data)}"
            )
        return cls(
            sender=ParticipantId.decode(data[:ID_BYTES]),
            recipient=ParticipantId.decode(data[ID_BYTES:2 * ID_BYTES]),
            value=Scalar.from_bytes(data[2 * ID_BYTES:]),
        )


@dataclass
class DKGResult:
    """Output of :func:`run_dkg`."""

    public: PublicKeyPackage
    key_packages: Dict[ParticipantId, KeyPackage]

    @property
    def group_public_key(self) -> Point:
        return self.public.group_public_key


# ── participant ─────────────────────────────────────────────────────────

class Participant:
    """
    One participant's local view of a DKG run.

    The instance is single-use: once FINALIZED or ABORTED it cannot be
    driven again.  Start a new run with a new ``Participant``.
    """

    def __init__(self, participant_id: int, params: ThresholdParams) -> None:
        self.id = ParticipantId(participant_id)
        self.params = params
        self.state = DKGState.INITIALIZED

        self._poly: Optional[SecretPolynomial] = None
        self.commitment: Optional[Commitment] = None
        self.proof: Optional[ProofOfKnowledge] = None

        # frozen when entering SHARES_EXCHANGED
        self._peer_commitments: Dict[ParticipantId, Commitment] = {}
        self._received: Set[ParticipantId] = set()
        self._accumulator = Scalar.zero()

    def _require(self, expected: DKGState, action: str) -> None:
        if self.state is not expected:
            raise ProtocolStateError(
                f"participant {self.id}: cannot {action} in state "
                f"{self.state.name} (expected {expected.name})"
            )

    def _transition(self, new: DKGState) -> None:
        logger.debug(
            "participant %s: %s -> %s", self.id, self.state.name, new.name,
        )
        self.state = new

    # ── round 1 ────────────────────────────────────────────────────────

    def publish(self, rng: Optional[Rng] = None) -> PeerCommitment:
        """Sample the secret polynomial and return the broadcast message."""
        self._require(DKGState.INITIALIZED, "publish a commitment")
        self._poly = SecretPolynomial.generate(self.params.t, rng)
        self.commitment = self._poly.commit()
        self.proof = ProofOfKnowledge.prove(self.id, self._poly, self.commitment, rng)
        self._transition(DKGState.COMMITMENT_PUBLISHED)
        return PeerCommitment(
            participant_id=self.id,
            commitment=self.commitment,
            proof=self.proof,
        )

    # ── round 2 ────────────────────────────────────────────────────────

    def exchange_shares(self, committee: Committee) -> Dict[ParticipantId, Share]:
        """
        Close the committee, freeze its verified set and compute one share
        per verified peer, this participant included.
        """
        self._require(DKGState.COMMITMENT_PUBLISHED, "exchange shares")
        if not committee.is_ready():
            raise ProtocolStateError(
                f"participant {self.id}: committee has not reached threshold"
            )
        peers = committee.verified_peers()
        own = peers.get(self.id)
        if own is None or own.commitment != self.commitment:
            raise ProtocolStateError(
                f"participant {self.id}: own commitment was not admitted"
            )

        if self._poly is None:
            raise ProtocolStateError(
                f"participant {self.id}: secret polynomial is gone"
            )
        # admitted peers are never removed, so own is still in the frozen set
        peers = committee.close()
        self._peer_commitments = {pid: r.commitment for pid, r in peers.items()}
        shares = {
            pid: Share(sender=self.id, recipient=pid, value=self._poly.evaluate(pid))
            for pid in sorted(peers)
        }
        self._transition(DKGState.SHARES_EXCHANGED)
        logger.info(
            "participant %s: dealt shares to %d verified peers",
            self.id, len(shares),
        )
        return shares

    def receive_share(self, share: Share) -> None:
        """
        Verify ``share`` against its sender's commitment and accumulate it.

        Raises ``VerificationFailure`` (after aborting the run) if the
        Feldman check fails.
        """
        self._require(DKGState.SHARES_EXCHANGED, "receive shares")
        sender = ParticipantId(share.sender)
        if share.recipient != self.id:
            raise ProtocolStateError(
                f"participant {self.id}: share addressed to {share.recipient}"
            )
        commitment = self._peer_commitments.get(sender)
        if commitment is None:
            raise ProtocolStateError(
                f"participant {self.id}: share from {sender}, "
                "which is not in the verified set"
            )
        if sender in self._received:
            raise ProtocolStateError(
                f"participant {self.id}: duplicate share from {sender}"
            )
        if not commitment.verify_share(self.id, share.value):
            self.abort()
            raise VerificationFailure(
                sender, "share is inconsistent with the published commitment",
            )
        self._accumulator = self._accumulator + share.value
        self._received.add(sender)

    @property
    def missing_shares(self) -> Set[ParticipantId]:
        return set(self._peer_commitments) - self._received

    # ── round 3 ────────────────────────────────────────────────────────

    def finalize(self) -> KeyPackage:
        """Combine all received shares into the long-term key package."""
        self._require(DKGState.SHARES_EXCHANGED, "finalize")
        missing = self.missing_shares
        if missing:
            raise ProtocolStateError(
                f"participant {self.id}: still waiting for shares from "
                f"{sorted(missing)}"
            )

        public = public_key_package_from(self._peer_commitments, self.params.t)
        key = KeyPackage(
            participant_id=self.id,
            secret_share=self._accumulator,
            public=public,
        )
        if not key.is_consistent():
            # unreachable when every received share passed the Feldman check
            self.abort()
            raise VerificationFailure(
                self.id, "long-term share does not match verification share",
            )

        self._destroy_secrets()
        self._transition(DKGState.FINALIZED)
        logger.info("participant %s: key generation finalized", self.id)
        return key

    def abort(self) -> None:
        """Discard all secret material from this run."""
        self._destroy_secrets()
        if self.state is not DKGState.ABORTED:
            logger.warning("participant %s: key generation aborted", self.id)
            self._transition(DKGState.ABORTED)

    def _destroy_secrets(self) -> None:
        if self._poly is not None:
            self._poly.destroy()
            self._poly = None
        self._accumulator = Scalar.zero()

    def __repr__(self) -> str:
        return f"Participant(id={self.id}, state={self.state.name})"


# ── full DKG orchestration ──────────────────────────────────────────────

def run_dkg(params: ThresholdParams, rng: Optional[Rng] = None) -> DKGResult:
    """
    Run a complete DKG locally, all participants in one process.

    In production each participant runs in its own process and messages
    travel over authenticated channels; this function is for tests and
    for :class:`~frostdkg.protocol.ThresholdScheme`.

    Raises
    ------
    QuorumError
        If fewer than  t  commitments were admitted.
    VerificationFailure
        If any share fails its Feldman check.
    """
    participants = {pid: Participant(pid, params) for pid in params.participant_ids}
    committee = Committee.from_params(params)

    for p in participants.values():
        committee.admit(p.publish(rng))
    verified = committee.verified_peers()
    if len(verified) < params.t:
        for p in participants.values():
            p.abort()
        raise QuorumError(params.t, len(verified), "verified peers")

    outbox = {
        pid: participants[pid].exchange_shares(committee) for pid in verified
    }
    try:
        for shares in outbox.values():
            for recipient, share in shares.items():
                participants[recipient].receive_share(share)
        key_packages = {pid: participants[pid].finalize() for pid in verified}
    except FrostError:
        for p in participants.values():
            p.abort()
        raise

    public = committee.public_key_package()
    if public is None:
        raise ProtocolStateError("committee is below threshold")
    return DKGResult(public=public, key_packages=key_packages)
