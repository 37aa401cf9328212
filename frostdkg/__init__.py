"""
frostdkg: FROST threshold Schnorr signatures with distributed key generation.

- **Key generation**: every participant deals a Feldman-committed
  random polynomial and proves knowledge of its constant term; no party
  ever learns the group secret  [Komlo & Goldberg, SAC 2020, §5.1].
- **Signing**: any  t  of the  n  key holders run two rounds and
  produce one Schnorr signature that verifies under the group key like
  a single-signer signature  [§5.2].

Group arithmetic is secp256k1 through ``coincurve`` (libsecp256k1).

This code has not been audited.  Do not use it to protect real value.

Quick start
-----------
::

    from frostdkg import ThresholdScheme

    scheme = ThresholdScheme.setup(n=3, t=2)
    sig = scheme.sign(b"transfer 1 BTC to Alice", signer_ids=[2, 3])
    assert scheme.verify(b"transfer 1 BTC to Alice", sig)
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

# ── core types ──────────────────────────────────────────────────────────
from .curve import Scalar, Point, G, ORDER
from .ids import ParticipantId
from .config import ThresholdParams

# ── errors ──────────────────────────────────────────────────────────────
from .errors import (
    FrostError,
    ConfigurationError,
    VerificationFailure,
    InvalidPartialSignature,
    QuorumError,
    SignerDropout,
    ProtocolStateError,
)

# ── cryptographic building blocks ───────────────────────────────────────
from .transcript import Transcript, bind
from .polynomial import SecretPolynomial, lagrange_coefficient, interpolate_at_zero
from .commitment import Commitment
from .proofs import ProofOfKnowledge

# ── key generation ──────────────────────────────────────────────────────
from .committee import Committee, PeerCommitment, PeerRecord
from .dkg import DKGState, DKGResult, Participant, Share, run_dkg
from .keys import KeyPackage, PublicKeyPackage

# ── signing ─────────────────────────────────────────────────────────────
from .signing import (
    Signer,
    Aggregator,
    SigningNonce,
    NonceCommitment,
    SigningPackage,
    PartialSignature,
    ThresholdSignature,
    verify_signature,
    sign_single,
)

# ── protocol ────────────────────────────────────────────────────────────
from .protocol import ThresholdScheme

__all__ = [
    # version
    "__version__",
    # core
    "Scalar", "Point", "G", "ORDER", "ParticipantId", "ThresholdParams",
    # errors
    "FrostError", "ConfigurationError", "VerificationFailure",
    "InvalidPartialSignature", "QuorumError", "SignerDropout",
    "ProtocolStateError",
    # building blocks
    "Transcript", "bind", "SecretPolynomial", "lagrange_coefficient",
    "interpolate_at_zero", "Commitment", "ProofOfKnowledge",
    # dkg
    "Committee", "PeerCommitment", "PeerRecord", "DKGState", "DKGResult",
    "Participant", "Share", "run_dkg", "KeyPackage", "PublicKeyPackage",
    # signing
    "Signer", "Aggregator", "SigningNonce", "NonceCommitment",
    "SigningPackage", "PartialSignature", "ThresholdSignature",
    "verify_signature", "sign_single",
    # protocol
    "ThresholdScheme",
]
