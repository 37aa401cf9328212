"""
Schnorr proof of knowledge of a dealer's constant term.

During key generation every participant publishes  C_0 = a_0 · G  and
proves it knows  a_0.  Without this proof a malicious participant could
publish  C_0 = X - Σ_{i≠self} C_{i,0}  for a key  X  of its choice and
cancel out everyone else's contribution (rogue-key attack).

The challenge binds the prover's identifier, so a proof cannot be
replayed under a different id or for a different  C_0:

    k ←$ Z_q,   R = k · G
    e = H_pok(id, C_0, R)
    z = k + e · a_0

Verification:  z · G  ==  R + e · C_0.

References
----------
- Schnorr (1989). "Efficient Identification and Signatures for Smart
  Cards."  CRYPTO 1989.
- Komlo, Goldberg (2020). "FROST: Flexible Round-Optimized Schnorr
  Threshold Signatures."  SAC 2020, §5.1 round 1 step 2.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .curve import Scalar, Point, G, Rng, POINT_BYTES, SCALAR_BYTES
from .commitment import Commitment
from .polynomial import SecretPolynomial
from .transcript import pok_challenge


@dataclass(frozen=True)
class ProofOfKnowledge:
    """Non-interactive PoK  (R, z)  of  a_0  such that  C_0 = a_0 · G."""

    R: Point
    z: Scalar

    @staticmethod
    def prove(
        participant_id: int,
        polynomial: SecretPolynomial,
        commitment: Commitment,
        rng: Optional[Rng] = None,
    ) -> ProofOfKnowledge:
        """
        Prove knowledge of ``polynomial``'s constant term.

        Parameters
        ----------
        participant_id : int
            Identifier the proof is bound to.
        polynomial : SecretPolynomial
            The witness holder; only ``a_0`` is used.
        commitment : Commitment
            The published commitment; ``commitment[0]`` is the statement.
        rng : callable or None
            Randomness source for the ephemeral nonce.
        """
        k = Scalar.random(rng)
        R = k * G
        e = pok_challenge(participant_id, commitment.constant_term, R)
        z = k + e * polynomial.constant_term
        return ProofOfKnowledge(R=R, z=z)

    def verify(self, participant_id: int, commitment0: Point) -> bool:
        """Check  z·G  ==  R + e·C_0."""
        e = pok_challenge(participant_id, commitment0, self.R)
        return self.z * G == self.R + (e * commitment0)

    def to_bytes(self) -> bytes:
        return self.R.to_bytes() + self.z.to_bytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> ProofOfKnowledge:
        if len(data) != POINT_BYTES + SCALAR_BYTES:
            raise ValueError(
                f"expected {POINT_BYTES + SCALAR_BYTES} bytes, got {len(data)}"
            )
        return cls(
            R=Point.from_bytes(data[:POINT_BYTES]),
            z=Scalar.from_bytes(data[POINT_BYTES:]),
        )
