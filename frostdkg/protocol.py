"""
High-level threshold Schnorr orchestration.

Provides a single ``ThresholdScheme`` class that ties together key
generation, signing, aggregation and verification for a committee
simulated in one process.  Useful for integration tests and as a
reference for how the message flow fits together.

Usage
-----
::

    from frostdkg import ThresholdScheme

    scheme = ThresholdScheme.setup(n=3, t=2)
    sig = scheme.sign(b"hello world", signer_ids=[1, 3])
    assert scheme.verify(b"hello world", sig)
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .curve import Point, Rng
from .config import ThresholdParams
from .dkg import DKGResult, run_dkg
from .errors import InvalidPartialSignature, QuorumError, SignerDropout
from .ids import ParticipantId
from .keys import KeyPackage, PublicKeyPackage
from .signing import (
    Aggregator,
    NonceCommitment,
    PartialSignature,
    Signer,
    SigningPackage,
    ThresholdSignature,
    verify_signature,
)

logger = logging.getLogger(__name__)

class ThresholdScheme:
    """
    End-to-end  t-of-n  threshold Schnorr.

    Encapsulates the full lifecycle:
    1. Setup: run DKG for every participant.
    2. Sign: two-round signing, excluding and retrying around faulty or
       unresponsive signers while at least  t  remain.
    3. Verify: plain Schnorr verification against the group key.
    """

    def __init__(
        self,
        dkg_result: DKGResult,
        rng: Optional[Rng] = None,
    ) -> None:
        self._public = dkg_result.public
        self._rng = rng
        self._signers: Dict[ParticipantId, Signer] = {
            pid: Signer(kp) for pid, kp in dkg_result.key_packages.items()
        }
        self._aggregator = Aggregator(self._public)

    # ── factories ──────────────────────────────────────────────────────

    @classmethod
    def setup(
        cls,
        n: int,
        t: int,
        participant_ids: Optional[Iterable[int]] = None,
        rng: Optional[Rng] = None,
    ) -> ThresholdScheme:
        """Create a committee and run DKG for all of its members."""
        params = ThresholdParams.create(n, t, participant_ids)
        return cls(run_dkg(params, rng), rng)

    @classmethod
    def from_key_packages(
        cls,
        key_packages: Iterable[KeyPackage],
        rng: Optional[Rng] = None,
    ) -> ThresholdScheme:
        """Rebuild a scheme from persisted key packages."""
        packages = {kp.participant_id: kp for kp in key_packages}
        if not packages:
            raise ValueError("no key packages given")
        publics = {kp.public.to_bytes() for kp in packages.values()}
        if len(publics) != 1:
            raise ValueError("key packages disagree on the public key package")
        public = next(iter(packages.values())).public
        return cls(DKGResult(public=public, key_packages=packages), rng)

    # ── signing ────────────────────────────────────────────────────────

    def sign(
        self,
        message: bytes,
        signer_ids: Optional[Iterable[int]] = None,
    ) -> ThresholdSignature:
        """
        Run the signing protocol for ``message``.

        Parameters
        ----------
        message : bytes
            The message to sign.
        signer_ids : iterable of int, optional
            Which participants sign.  Defaults to the first  t  ids.

        Raises
        ------
        QuorumError
            If fewer than  t  usable signers remain.
        """
        t = self._public.threshold
        if signer_ids is None:
            active = sorted(self._signers)[:t]
        else:
            active = sorted({ParticipantId(pid) for pid in signer_ids})
        unknown = [int(pid) for pid in active if pid not in self._signers]
        if unknown:
            raise ValueError(f"unknown signers {unknown}")

        while True:
            if len(active) < t:
                raise QuorumError(t, len(active), "signers")
            try:
                return self._run_round(message, active)
            except InvalidPartialSignature as exc:
                excluded = set(exc.culprits)
            except SignerDropout as exc:
                excluded = set(exc.missing)
            logger.warning(
                "excluding signers %s and retrying", sorted(int(p) for p in excluded),
            )
            active = [pid for pid in active if pid not in excluded]

    def _run_round(
        self,
        message: bytes,
        active: List[ParticipantId],
    ) -> ThresholdSignature:
        # Round 1: nonce commitments
        commitments: List[NonceCommitment] = [
            self._signers[pid].commit(self._rng) for pid in active
        ]
        try:
            package = SigningPackage.create(
                message, commitments, self._public.threshold,
            )
            # Round 2: responses
            partials = self._collect_responses(package, active)
        finally:
            # nonces of a round are never carried into the next one
            for nc in commitments:
                self._signers[nc.signer_id].discard(nc)

        return self._aggregator.aggregate(package, partials)

    def _collect_responses(
        self,
        package: SigningPackage,
        active: List[ParticipantId],
    ) -> List[PartialSignature]:
        """Round 2: the partial signatures that arrived for ``package``."""
        return [self._signers[pid].sign(package) for pid in active]

    # ── verification ───────────────────────────────────────────────────

    def verify(self, message: bytes, signature: ThresholdSignature) -> bool:
        return verify_signature(self._public.group_public_key, message, signature)

    # ── accessors ──────────────────────────────────────────────────────

    @property
    def group_public_key(self) -> Point:
        return self._public.group_public_key

    @property
    def public_key_package(self) -> PublicKeyPackage:
        return self._public

    @property
    def threshold(self) -> int:
        return self._public.threshold

    @property
    def committee_size(self) -> int:
        return len(self._signers)

    def signer(self, participant_id: int) -> Signer:
        return self._signers[ParticipantId(participant_id)]

    def __repr__(self) -> str:
        return f"ThresholdScheme(t={self.threshold}, n={self.committee_size})"
