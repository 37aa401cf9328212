"""
Fiat-Shamir transcripts.

A :class:`Transcript` absorbs labelled protocol messages in order and
squeezes scalar challenges out of them.  Every transcript starts from a
domain label, hashed BIP-340 style into a tag prefix:

    state = SHA-512( SHA-256(tag) ‖ SHA-256(tag) ‖ items… )

and every absorbed item is framed as ``len(label) ‖ label ‖ len(msg) ‖
msg`` with 4-byte big-endian lengths, so no two distinct sequences of
(label, message) pairs produce the same byte stream.  Challenges are the
64-byte SHA-512 digest reduced modulo the group order, which keeps the
bias below 2^-256.

Key generation and signing use distinct domain labels, so a challenge
computed in one phase can never be replayed in the other.
"""

from __future__ import annotations

import hashlib
from typing import Iterable, Tuple

from .curve import Scalar, Point

# ── domain labels ───────────────────────────────────────────────────────
DKG_POK_DOMAIN = b"frostdkg/v1/dkg-pok"
SIGN_BINDING_DOMAIN = b"frostdkg/v1/sign-binding"
SIGN_CHALLENGE_DOMAIN = b"frostdkg/v1/sign-challenge"

_CHALLENGE_PREFIX = b"challenge:"


def _frame(data: bytes) -> bytes:
    return len(data).to_bytes(4, "big") + data


class Transcript:
    """Deterministic, domain-separated Fiat-Shamir transcript."""

    def __init__(self, domain_label: bytes) -> None:
        if not domain_label:
            raise ValueError("domain label must be non-empty")
        tag_hash = hashlib.sha256(domain_label).digest()
        self._h = hashlib.sha512()
        self._h.update(tag_hash)
        self._h.update(tag_hash)

    def append_message(self, label: bytes, message: bytes) -> None:
        self._h.update(_frame(label))
        self._h.update(_frame(message))

    def append_u64(self, label: bytes, value: int) -> None:
        self.append_message(label, int(value).to_bytes(8, "big"))

    def append_point(self, label: bytes, point: Point) -> None:
        self.append_message(label, point.to_bytes())

    def append_scalar(self, label: bytes, scalar: Scalar) -> None:
        self.append_message(label, scalar.to_bytes())

    def challenge_scalar(self, label: bytes) -> Scalar:
        """
        Squeeze a challenge.  The label and output are absorbed back into
        the transcript so a second challenge never repeats the first.
        """
        h = self._h.copy()
        h.update(_frame(_CHALLENGE_PREFIX + label))
        digest = h.digest()
        self.append_message(_CHALLENGE_PREFIX + label, digest)
        return Scalar.from_bytes_reduce(digest)


def bind(domain_label: bytes, fields: Iterable[Tuple[bytes, bytes]]) -> Scalar:
    """Absorb ``fields`` in order under ``domain_label`` and return a challenge."""
    t = Transcript(domain_label)
    for label, message in fields:
        t.append_message(label, message)
    return t.challenge_scalar(b"scalar")


# ── protocol challenges ─────────────────────────────────────────────────
#
# Each challenge is a plain ``bind`` over its fields, so any party can
# recompute it from the published values alone.

def _u64(value: int) -> bytes:
    return int(value).to_bytes(8, "big")


def pok_challenge(participant_id: int, commitment0: Point, R: Point) -> Scalar:
    """Challenge  e  for the DKG proof of knowledge of a_0."""
    return bind(DKG_POK_DOMAIN, [
        (b"participant-id", _u64(participant_id)),
        (b"constant-term-commitment", commitment0.to_bytes()),
        (b"nonce-commitment", R.to_bytes()),
    ])


def binding_factor(
    participant_id: int,
    message: bytes,
    encoded_commitments: bytes,
    group_public_key: Point,
) -> Scalar:
    """
    Per-signer binding factor  ρ_j = H(Y, m, B, j).

    ``encoded_commitments`` is the canonical encoding of the whole signer
    set's nonce commitments, so a signer cannot adapt its nonce after
    seeing the others'.
    """
    return bind(SIGN_BINDING_DOMAIN, [
        (b"group-public-key", group_public_key.to_bytes()),
        (b"message", bytes(message)),
        (b"nonce-commitments", encoded_commitments),
        (b"participant-id", _u64(participant_id)),
    ])


def signature_challenge(R: Point, group_public_key: Point, message: bytes) -> Scalar:
    """Schnorr challenge  c = H(R, Y, m), shared by single and threshold signing."""
    return bind(SIGN_CHALLENGE_DOMAIN, [
        (b"nonce", R.to_bytes()),
        (b"public-key", group_public_key.to_bytes()),
        (b"message", bytes(message)),
    ])
