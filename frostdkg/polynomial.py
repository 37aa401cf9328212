"""
Secret polynomials and Lagrange interpolation over Z_q.

Each DKG participant samples a random polynomial of degree  t-1:

    f_i(x) = a_{i,0} + a_{i,1} x + … + a_{i,t-1} x^{t-1}

whose constant term  a_{i,0}  is its contribution to the group secret.
Participant  j  receives  f_i(j)  from every dealer  i;  any  t  such
evaluations of the summed polynomial determine  f(0)  through Lagrange
interpolation.

References
----------
- Shamir (1979). "How to Share a Secret."  CACM 22(11).
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from .curve import Scalar, G, Rng
from .commitment import Commitment
from .errors import ConfigurationError, ProtocolStateError


class SecretPolynomial:
    """
    A dealer's secret polynomial,  coefficients[k] = a_k.

    Owned by exactly one participant and destroyed once its shares have
    been handed out; every method raises ``ProtocolStateError`` after
    :meth:`destroy`.
    """

    __slots__ = ("_coeffs",)

    def __init__(self, coefficients: Sequence[Scalar]) -> None:
        if not coefficients:
            raise ConfigurationError("polynomial needs at least one coefficient")
        self._coeffs: Optional[List[Scalar]] = list(coefficients)

    @classmethod
    def generate(cls, threshold: int, rng: Optional[Rng] = None) -> SecretPolynomial:
        """Sample ``threshold`` uniform coefficients (degree ``threshold - 1``)."""
        if threshold < 1:
            raise ConfigurationError("threshold must be ≥ 1")
        return cls([Scalar.random(rng) for _ in range(threshold)])

    def _live(self) -> List[Scalar]:
        if self._coeffs is None:
            raise ProtocolStateError("secret polynomial has been destroyed")
        return self._coeffs

    @property
    def degree(self) -> int:
        return len(self._live()) - 1

    @property
    def constant_term(self) -> Scalar:
        return self._live()[0]

    def evaluate(self, point) -> Scalar:
        """Evaluate f(point) via Horner's method, O(t) mults."""
        coeffs = self._live()
        x = point if isinstance(point, Scalar) else Scalar(point)
        result = coeffs[-1]
        for c in reversed(coeffs[:-1]):
            result = result * x + c
        return result

    def commit(self) -> Commitment:
        """Feldman commitment:  C_k = a_k · G  for each coefficient."""
        return Commitment(points=tuple(a * G for a in self._live()))

    def destroy(self) -> None:
        """Overwrite the coefficients (best effort in Python) and drop them."""
        if self._coeffs is not None:
            for k in range(len(self._coeffs)):
                self._coeffs[k] = Scalar.zero()
        self._coeffs = None

    @property
    def destroyed(self) -> bool:
        return self._coeffs is None

    def __repr__(self) -> str:
        if self._coeffs is None:
            return "SecretPolynomial(destroyed)"
        return f"SecretPolynomial(degree={len(self._coeffs) - 1})"


# ── Lagrange interpolation ──────────────────────────────────────────────

def lagrange_coefficient(
    target_id: int,
    signer_ids: Iterable[int],
    at: int = 0,
) -> Scalar:
    r"""
    Lagrange coefficient of ``target_id`` within ``signer_ids``, for
    interpolation at ``at`` (default 0):

    .. math::
        \lambda_i = \prod_{j \in S,\; j \ne i} \frac{at - j}{i - j}
    """
    ids = list(signer_ids)
    if target_id not in ids:
        raise ValueError(f"target_id {target_id} not in signer_ids")
    if len(set(ids)) != len(ids):
        raise ValueError("signer_ids contains duplicates")
    xi = Scalar(target_id)
    x = Scalar(at)
    num = Scalar.one()
    den = Scalar.one()
    for sid in ids:
        if sid == target_id:
            continue
        xj = Scalar(sid)
        num = num * (x - xj)
        den = den * (xi - xj)
    return num / den


def interpolate_at_zero(shares: Dict[int, Scalar]) -> Scalar:
    """Recover f(0) from a mapping  index → f(index)."""
    ids = list(shares)
    return sum(
        (lagrange_coefficient(i, ids) * shares[i] for i in ids),
        Scalar.zero(),
    )
