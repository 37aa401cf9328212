"""
Two-round threshold Schnorr signing (FROST).

A signer subset  S  with  |S| ≥ t  produces one Schnorr signature under
the group key  Y:

**Round 1 (commit):**  each signer samples a fresh nonce pair  (d, e)
and broadcasts  (D = d·G,  E = e·G).

**Round 2 (respond):**  once the commitments of all of  S  are collected
into a :class:`SigningPackage`, each signer computes

    ρ_j = H_bind(Y, m, B, j)                 (binding factor)
    R   = Σ_{k∈S} (D_k + ρ_k · E_k)          (group commitment)
    c   = H_sig(R, Y, m)                     (challenge)
    z_j = d_j + ρ_j · e_j + λ_j · x_j · c    (partial signature)

where  B  encodes every commitment in  S  and  λ_j  is the Lagrange
coefficient of  j  in  S.  The aggregator checks each  z_j  against the
signer's public verification share  X_j = x_j · G  and returns
(R, z = Σ z_j),  an ordinary Schnorr signature.

A nonce pair is used for exactly one signature and then erased: two
signatures sharing a nonce reveal the long-term share.  :class:`Signer`
enforces this by handing out each nonce only once.

References
----------
- Komlo, Goldberg (2020). "FROST: Flexible Round-Optimized Schnorr
  Threshold Signatures."  SAC 2020, §5.2.
- Bellare, Crites, Komlo, Maller, Tessaro, Zhu (2022). "Better Than
  Advertised Security for Non-Interactive Threshold Signatures."
  CRYPTO 2022.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .curve import Scalar, Point, G, Rng, POINT_BYTES, SCALAR_BYTES
from .errors import (
    InvalidPartialSignature,
    ProtocolStateError,
    QuorumError,
    SignerDropout,
    VerificationFailure,
)
from .ids import ParticipantId, ID_BYTES
from .keys import KeyPackage, PublicKeyPackage
from .polynomial import lagrange_coefficient
from .transcript import binding_factor, signature_challenge

logger = logging.getLogger(__name__)


# ── data structures ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class NonceCommitment:
    """Public nonce commitment  (D, E)  broadcast in round 1."""

    signer_id: ParticipantId
    D: Point       # D = d · G
    E: Point       # E = e · G

    def to_bytes(self) -> bytes:
        return self.signer_id.encode() + self.D.to_bytes() + self.E.to_bytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> NonceCommitment:
        if len(data) != ID_BYTES + 2 * POINT_BYTES:
            raise ValueError(
                f"expected {ID_BYTES + 2 * POINT_BYTES} bytes, got {len(data)}"
            )
        return cls(
            signer_id=ParticipantId.decode(data[:ID_BYTES]),
            D=Point.from_bytes(data[ID_BYTES:ID_BYTES + POINT_BYTES]),
            E=Point.from_bytes(data[ID_BYTES + POINT_BYTES:]),
        )


@dataclass
class SigningNonce:
    """Secret nonce pair, used exactly once and then erased."""

    d: Scalar = field(repr=False)
    e: Scalar = field(repr=False)
    used: bool = False

    @classmethod
    def generate(cls, rng: Optional[Rng] = None) -> SigningNonce:
        return cls(d=Scalar.random(rng), e=Scalar.random(rng))

    def commitment(self, signer_id: ParticipantId) -> NonceCommitment:
        return NonceCommitment(signer_id=signer_id, D=self.d * G, E=self.e * G)

    def mark_used(self) -> None:
        if self.used:
            raise ProtocolStateError("signing nonce already used")
        self.used = True

    def clear(self) -> None:
        """Overwrite secrets (best-effort in Python)."""
        self.d = Scalar.zero()
        self.e = Scalar.zero()


@dataclass(frozen=True)
class PartialSignature:
    """A signer's round-2 response  z_j."""

    signer_id: ParticipantId
    z: Scalar

    def to_bytes(self) -> bytes:
        return self.signer_id.encode() + self.z.to_bytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> PartialSignature:
        if len(data) != ID_BYTES + SCALAR_BYTES:
            raise ValueError(
                f"expected {ID_BYTES + SCALAR_BYTES} bytes, got {len(data)}"
            )
        return cls(
            signer_id=ParticipantId.decode(data[:ID_BYTES]),
            z=Scalar.from_bytes(data[ID_BYTES:]),
        )


@dataclass(frozen=True)
class ThresholdSignature:
    """
    Final signature  (R, z),  verifiable as a single-signer Schnorr
    signature:  z·G  ==  R + c·Y   where  c = H_sig(R, Y, m).
    """

    R: Point
    z: Scalar

    def to_bytes(self) -> bytes:
        """Serialise to 65 bytes: compressed R (33) + z (32)."""
        return self.R.to_bytes() + self.z.to_bytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> ThresholdSignature:
        if len(data) != POINT_BYTES + SCALAR_BYTES:
            raise ValueError(f"expected 65 bytes, got {len(data)}")
        return cls(
            R=Point.from_bytes(data[:POINT_BYTES]),
            z=Scalar.from_bytes(data[POINT_BYTES:]),
        )


# ── signing package ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class SigningPackage:
    """
    The message and the nonce commitments of the whole signer subset.

    Everything round 2 needs besides secrets is derived from this value,
    so signers and aggregator agree on  R,  c  and every  λ_j.
    """

    message: bytes
    commitments: Mapping[ParticipantId, NonceCommitment]

    @classmethod
    def create(
        cls,
        message: bytes,
        commitments: Iterable[NonceCommitment],
        threshold: int,
    ) -> SigningPackage:
        """
        Build a package from the commitments actually received.

        Raises ``QuorumError`` if fewer than ``threshold`` signers
        committed; signers that never committed are simply absent.
        """
        table: Dict[ParticipantId, NonceCommitment] = {}
        for nc in commitments:
            pid = ParticipantId(nc.signer_id)
            if pid in table:
                raise ProtocolStateError(f"two nonce commitments from signer {pid}")
            if nc.D.is_identity() or nc.E.is_identity():
                raise VerificationFailure(pid, "nonce commitment is the identity")
            table[pid] = nc
        if len(table) < threshold:
            raise QuorumError(threshold, len(table), "committed signers")
        return cls(message=bytes(message), commitments=MappingProxyType(table))

    @property
    def signer_ids(self) -> Tuple[ParticipantId, ...]:
        return tuple(sorted(self.commitments))

    def __len__(self) -> int:
        return len(self.commitments)

    def encode_commitments(self) -> bytes:
        """Canonical encoding  B  of the commitment list, sorted by id."""
        return b"".join(self.commitments[pid].to_bytes() for pid in self.signer_ids)

    def binding_factors(self, group_public_key: Point) -> Dict[ParticipantId, Scalar]:
        encoded = self.encode_commitments()
        return {
            pid: binding_factor(pid, self.message, encoded, group_public_key)
            for pid in self.signer_ids
        }

    def nonce_points(self, group_public_key: Point) -> Dict[ParticipantId, Point]:
        """Per-signer effective nonce points  R_j = D_j + ρ_j · E_j."""
        rhos = self.binding_factors(group_public_key)
        return {
            pid: self.commitments[pid].D + (rhos[pid] * self.commitments[pid].E)
            for pid in self.signer_ids
        }

    def group_commitment(self, group_public_key: Point) -> Point:
        return Point.sum_points(self.nonce_points(group_public_key).values())

    def challenge(self, group_public_key: Point) -> Scalar:
        R = self.group_commitment(group_public_key)
        return signature_challenge(R, group_public_key, self.message)

    def lagrange(self, signer_id: int) -> Scalar:
        return lagrange_coefficient(signer_id, self.signer_ids)


# ── signer ──────────────────────────────────────────────────────────────

class Signer:
    """
    Signing state for one finalized participant.

    ``commit`` may be called any number of times; every call creates an
    independent nonce that is remembered under its public commitment, so
    rounds for different messages can run concurrently.  ``sign`` removes
    the nonce before using it, which makes a second response for the same
    commitment impossible.
    """

    def __init__(self, key_package: KeyPackage) -> None:
        self.key = key_package
        self.id = key_package.participant_id
        self._lock = threading.Lock()
        self._nonces: Dict[NonceCommitment, SigningNonce] = {}

    def commit(self, rng: Optional[Rng] = None) -> NonceCommitment:
        """Round 1: sample a fresh nonce pair and return its commitment."""
        nonce = SigningNonce.generate(rng)
        nc = nonce.commitment(self.id)
        with self._lock:
            if nc in self._nonces:
                # only possible with a broken rng
                raise ProtocolStateError("rng produced a repeated nonce")
            self._nonces[nc] = nonce
        return nc

    @property
    def pending_nonces(self) -> int:
        with self._lock:
            return len(self._nonces)

    def discard(self, commitment: NonceCommitment) -> None:
        """Erase the nonce behind ``commitment`` (round abandoned)."""
        with self._lock:
            nonce = self._nonces.pop(commitment, None)
        if nonce is not None:
            nonce.clear()

    def sign(self, package: SigningPackage) -> PartialSignature:
        """
        Round 2: compute  z_j  for ``package``.

        Raises ``ProtocolStateError`` if this signer is not in the
        package or its commitment does not belong to an unused nonce, and
        ``QuorumError`` if the package is below threshold.
        """
        own = package.commitments.get(self.id)
        if own is None:
            raise ProtocolStateError(f"signer {self.id} is not in the signing package")
        with self._lock:
            nonce = self._nonces.pop(own, None)
        if nonce is None:
            raise ProtocolStateError(
                f"signer {self.id}: no unused nonce for this commitment"
            )
        try:
            nonce.mark_used()
            if len(package) < self.key.threshold:
                raise QuorumError(self.key.threshold, len(package), "signers")
            for pid in package.signer_ids:
                if pid not in self.key.public.verification_shares:
                    raise ProtocolStateError(
                        f"signer {pid} in package is not a key holder"
                    )

            Y = self.key.group_public_key
            rho = package.binding_factors(Y)[self.id]
            c = package.challenge(Y)
            lam = package.lagrange(self.id)
            z = nonce.d + rho * nonce.e + lam * self.key.secret_share * c
        finally:
            nonce.clear()

        logger.debug("signer %s produced a partial signature", self.id)
        return PartialSignature(signer_id=self.id, z=z)


# ── aggregator ──────────────────────────────────────────────────────────

class Aggregator:
    """
    Combines partial signatures into a threshold signature.

    The aggregator holds only public data.  It is trusted for liveness,
    not for unforgeability: every partial signature is checked against
    the signer's verification share before it is used, so a malicious
    response is attributed to its signer instead of silently producing
    an invalid signature.
    """

    def __init__(self, public: PublicKeyPackage) -> None:
        self.public = public
        self.pk = public.group_public_key

    def verify_partial(
        self,
        package: SigningPackage,
        partial: PartialSignature,
    ) -> bool:
        """Check  z_j·G  ==  R_j + λ_j·c·X_j."""
        return self._verify_partial(
            package, partial,
            package.nonce_points(self.pk), package.challenge(self.pk),
        )

    def _verify_partial(
        self,
        package: SigningPackage,
        partial: PartialSignature,
        nonce_points: Mapping[ParticipantId, Point],
        c: Scalar,
    ) -> bool:
        pid = ParticipantId(partial.signer_id)
        X_j = self.public.verification_share(pid)
        lhs = partial.z * G
        rhs = nonce_points[pid] + (package.lagrange(pid) * c * X_j)
        return lhs == rhs

    def aggregate(
        self,
        package: SigningPackage,
        partials: Sequence[PartialSignature],
    ) -> ThresholdSignature:
        """
        Verify every response and return  (R, Σ z_j).

        Raises
        ------
        QuorumError
            Fewer than  t  responses.
        SignerDropout
            Some committed signers did not respond; restart the round
            with ``responders``.
        InvalidPartialSignature
            One or more responses failed verification; ``culprits``
            names them all.
        """
        t = self.public.threshold
        by_signer: Dict[ParticipantId, PartialSignature] = {}
        for ps in partials:
            pid = ParticipantId(ps.signer_id)
            if pid not in package.commitments:
                raise ProtocolStateError(f"response from {pid}, who did not commit")
            if pid in by_signer:
                raise ProtocolStateError(f"two responses from signer {pid}")
            by_signer[pid] = ps
        for pid in package.signer_ids:
            if pid not in self.public.verification_shares:
                raise ProtocolStateError(f"signer {pid} is not a key holder")

        if len(by_signer) < t:
            raise QuorumError(t, len(by_signer), "partial signatures")
        missing = set(package.signer_ids) - set(by_signer)
        if missing:
            logger.warning(
                "signers %s dropped out of the round", sorted(int(p) for p in missing),
            )
            raise SignerDropout(t, missing, by_signer)

        nonce_points = package.nonce_points(self.pk)
        R = Point.sum_points(nonce_points.values())
        c = signature_challenge(R, self.pk, package.message)

        culprits = [
            pid for pid, ps in sorted(by_signer.items())
            if not self._verify_partial(package, ps, nonce_points, c)
        ]
        if culprits:
            logger.warning(
                "invalid partial signatures from %s", [int(p) for p in culprits],
            )
            raise InvalidPartialSignature(culprits)

        z = sum((ps.z for ps in by_signer.values()), Scalar.zero())
        sig = ThresholdSignature(R=R, z=z)

        # individual checks passing implies this holds
        if not verify_signature(self.pk, package.message, sig):
            raise VerificationFailure(None, "aggregated signature does not verify")

        logger.info(
            "aggregated signature from signers %s",
            [int(p) for p in package.signer_ids],
        )
        return sig


# ── single-party Schnorr ────────────────────────────────────────────────

def verify_signature(
    public_key: Point,
    message: bytes,
    sig: ThresholdSignature,
) -> bool:
    """
    Schnorr verification:  z·G  ==  R + c·Y.

    The same equation accepts threshold and single-signer signatures;
    nothing in the signature reveals which signer subset produced it.
    """
    c = signature_challenge(sig.R, public_key, message)
    return sig.z * G == sig.R + (c * public_key)


def sign_single(
    secret: Scalar,
    message: bytes,
    rng: Optional[Rng] = None,
) -> ThresholdSignature:
    """Plain Schnorr signature under  Y = secret · G."""
    k = Scalar.random(rng)
    R = k * G
    c = signature_challenge(R, secret * G, message)
    return ThresholdSignature(R=R, z=k + c * secret)
