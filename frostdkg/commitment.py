"""
Feldman polynomial commitments.

For a dealer polynomial  f(x) = a_0 + a_1 x + … + a_{t-1} x^{t-1}  the
commitment is the vector of points

    C_k = a_k · G     for  k = 0, …, t-1.

Anyone holding the commitment can evaluate it "in the exponent" at a
participant index  j:

    F(j) = Σ_k  j^k · C_k  =  f(j) · G

which lets a recipient check a private share  s = f(j)  without learning
anything beyond  a_0 · G.  Commitments are additively homomorphic: the
coefficient-wise sum of every dealer's commitment commits to the sum of
their polynomials, and its evaluation at  j  is participant  j's public
verification share.

References
----------
- Feldman (1987). "A Practical Scheme for Non-Interactive Verifiable
  Secret Sharing."  FOCS 1987.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .curve import Scalar, Point, G, POINT_BYTES


@dataclass(frozen=True)
class Commitment:
    """Public commitment  (C_0, …, C_{t-1})  to a secret polynomial."""

    points: Tuple[Point, ...]

    def __post_init__(self) -> None:
        # accept any sequence, store a tuple so the value stays immutable
        object.__setattr__(self, "points", tuple(self.points))

    @property
    def constant_term(self) -> Point:
        """C_0 = a_0 · G, the dealer's contribution to the group key."""
        return self.points[0]

    @property
    def threshold(self) -> int:
        return len(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def __getitem__(self, k: int) -> Point:
        return self.points[k]

    def evaluate(self, index: int) -> Point:
        """Σ_k  index^k · C_k, computed by Horner's rule in the exponent."""
        x = Scalar(index)
        acc = Point.identity()
        for C_k in reversed(self.points):
            acc = (x * acc) + C_k
        return acc

    def verify_share(self, index: int, share: Scalar) -> bool:
        """Feldman check:  share · G  ==  Σ_k  index^k · C_k."""
        return share * G == self.evaluate(index)

    def to_bytes(self) -> bytes:
        parts = [len(self.points).to_bytes(4, "big")]
        parts.extend(p.to_bytes() for p in self.points)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> Commitment:
        if len(data) < 4:
            raise ValueError("commitment encoding too short")
        count = int.from_bytes(data[:4], "big")
        if len(data) != 4 + count * POINT_BYTES:
            raise ValueError(
                f"commitment encoding length mismatch for {count} points"
            )
        points: List[Point] = []
        for k in range(count):
            off = 4 + k * POINT_BYTES
            points.append(Point.from_bytes(data[off:off + POINT_BYTES]))
        return cls(points=tuple(points))


def combine(commitments: Iterable[Commitment]) -> Commitment:
    """Coefficient-wise sum of equal-length commitments."""
    commitments = list(commitments)
    if not commitments:
        raise ValueError("nothing to combine")
    width = commitments[0].threshold
    if any(c.threshold != width for c in commitments):
        raise ValueError("commitments have different lengths")
    columns: Sequence[Point] = [
        Point.sum_points(c.points[k] for c in commitments)
        for k in range(width)
    ]
    return Commitment(points=tuple(columns))
