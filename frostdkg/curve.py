"""
secp256k1 group arithmetic on top of libsecp256k1.

Point operations go through ``coincurve``, the CFFI binding of Bitcoin
Core's libsecp256k1.  Scalars are Python integers reduced modulo the
group order; nothing the protocol does with them is hot enough to need
more.

Anything that samples randomness takes an optional ``rng`` callable
with the signature of :func:`secrets.token_bytes`, so tests can make
every run reproducible.

Install
-------
    pip install coincurve>=18.0.0

References
----------
- SEC 2 v2 §2.4.1  secp256k1 domain parameters
- SEC 1 v2 §2.3.3  compressed point encoding
"""

from __future__ import annotations

import secrets
from typing import Callable, Iterable, Optional

from coincurve import PrivateKey, PublicKey

# group order  q
ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SCALAR_BYTES = 32
POINT_BYTES = 33

_IDENTITY_ENCODING = bytes(POINT_BYTES)

Rng = Callable[[int], bytes]


def default_rng(n: int) -> bytes:
    return secrets.token_bytes(n)


class Scalar:
    """Integer modulo the group order  q."""

    __slots__ = ("value",)

    def __init__(self, value: int) -> None:
        self.value = int(value) % ORDER

    @classmethod
    def zero(cls) -> Scalar:
        return cls(0)

    @classmethod
    def one(cls) -> Scalar:
        return cls(1)

    @classmethod
    def random(cls, rng: Optional[Rng] = None) -> Scalar:
        """Uniform nonzero scalar, rejection-sampled from ``rng`` output."""
        draw = rng or default_rng
        while True:
            raw = draw(SCALAR_BYTES)
            if len(raw) != SCALAR_BYTES:
                raise ValueError(
                    f"rng returned {len(raw)} bytes, expected {SCALAR_BYTES}"
                )
            candidate = int.from_bytes(raw, "big")
            if 0 < candidate < ORDER:
                return cls(candidate)

    @classmethod
    def from_bytes(cls, data: bytes) -> Scalar:
        """Canonical 32-byte big-endian decoding; rejects values ≥ q."""
        if len(data) != SCALAR_BYTES:
            raise ValueError(f"scalar must be {SCALAR_BYTES} bytes, got {len(data)}")
        candidate = int.from_bytes(data, "big")
        if candidate >= ORDER:
            raise ValueError("scalar encoding is not reduced")
        return cls(candidate)

    @classmethod
    def from_bytes_reduce(cls, data: bytes) -> Scalar:
        """Interpret any number of bytes as an integer and reduce mod q."""
        return cls(int.from_bytes(data, "big"))

    def to_bytes(self) -> bytes:
        return self.value.to_bytes(SCALAR_BYTES, "big")

    def is_zero(self) -> bool:
        return self.value == 0

    def inv(self) -> Scalar:
        if self.value == 0:
            raise ZeroDivisionError("zero has no inverse mod q")
        return Scalar(pow(self.value, -1, ORDER))

    def __add__(self, other):
        if isinstance(other, Scalar):
            return Scalar(self.value + other.value)
        return NotImplemented

    def __radd__(self, other):
        # lets sum() start from the integer 0
        if other == 0 and isinstance(other, int):
            return self
        return NotImplemented

    def __sub__(self, other):
        if isinstance(other, Scalar):
            return Scalar(self.value - other.value)
        return NotImplemented

    def __neg__(self) -> Scalar:
        return Scalar(-self.value)

    def __mul__(self, other):
        if isinstance(other, Scalar):
            return Scalar(self.value * other.value)
        if isinstance(other, Point):
            return other._smul(self)
        return NotImplemented

    def __rmul__(self, other):
        if isinstance(other, int):
            return Scalar(other * self.value)
        return NotImplemented

    def __truediv__(self, other):
        if isinstance(other, Scalar):
            return self * other.inv()
        return NotImplemented

    def __pow__(self, exponent: int) -> Scalar:
        if exponent < 0:
            return self.inv() ** -exponent
        return Scalar(pow(self.value, exponent, ORDER))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Scalar):
            return self.value == other.value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value)

    def __bool__(self) -> bool:
        return self.value != 0

    def __repr__(self) -> str:
        # scalars are usually secret
        return "Scalar(<redacted>)"


class Point:
    """
    Element of the secp256k1 group.

    libsecp256k1 has no representation for the point at infinity, so the
    identity is a ``Point`` without a key.  It encodes as 33 zero bytes,
    a prefix no compressed point can have.
    """

    __slots__ = ("_key",)

    def __init__(self, key: Optional[PublicKey] = None) -> None:
        self._key = key

    @classmethod
    def generator(cls) -> Point:
        return cls(PrivateKey((1).to_bytes(SCALAR_BYTES, "big")).public_key)

    @classmethod
    def identity(cls) -> Point:
        return cls(None)

    @classmethod
    def from_scalar(cls, s: Scalar) -> Point:
        """s · G"""
        if s.is_zero():
            return cls.identity()
        return cls(PrivateKey(s.to_bytes()).public_key)

    @classmethod
    def from_bytes(cls, data: bytes) -> Point:
        if len(data) != POINT_BYTES:
            raise ValueError(f"point must be {POINT_BYTES} bytes, got {len(data)}")
        if data == _IDENTITY_ENCODING:
            return cls.identity()
        if data[0] not in (0x02, 0x03):
            raise ValueError("point is not in compressed form")
        return cls(PublicKey(data))

    def to_bytes(self) -> bytes:
        if self._key is None:
            return _IDENTITY_ENCODING
        return self._key.format(compressed=True)

    def is_identity(self) -> bool:
        return self._key is None

    def _smul(self, s: Scalar) -> Point:
        if self._key is None or s.is_zero():
            return Point.identity()
        if self == G:
            return Point.from_scalar(s)
        return Point(self._key.multiply(s.to_bytes()))

    def __neg__(self) -> Point:
        if self._key is None:
            return self
        encoded = bytearray(self.to_bytes())
        encoded[0] ^= 0x01  # swap 02/03: same x, other y
        return Point(PublicKey(bytes(encoded)))

    def __add__(self, other):
        if not isinstance(other, Point):
            return NotImplemented
        return Point.sum_points((self, other))

    def __sub__(self, other):
        if not isinstance(other, Point):
            return NotImplemented
        return self + (-other)

    def __rmul__(self, s):
        if isinstance(s, int):
            s = Scalar(s)
        if isinstance(s, Scalar):
            return self._smul(s)
        return NotImplemented

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Point):
            return self.to_bytes() == other.to_bytes()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    def __repr__(self) -> str:
        if self._key is None:
            return "Point(identity)"
        return f"Point({self.to_bytes().hex()[:16]}…)"

    @staticmethod
    def sum_points(points: Iterable[Point]) -> Point:
        """Add any number of points with one libsecp256k1 call."""
        keys = [p._key for p in points if p._key is not None]
        if not keys:
            return Point.identity()
        if len(keys) == 1:
            return Point(keys[0])
        try:
            return Point(PublicKey.combine_keys(keys))
        except ValueError:
            # the sum is the point at infinity
            return Point.identity()


G = Point.generator()
