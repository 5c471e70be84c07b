# src/padelrank/rating/glicko2_math.py

"""
Numeric primitives of the Glicko-2 rating system.

Everything here works on the Glicko-2 internal scale, where
``mu = (rating - 1500) / 173.7178`` and ``phi = rd / 173.7178``.
The formulas and step numbers follow the paper by Dr. Mark Glickman:
https://www.glicko.net/glicko/glicko2.pdf

The functions are pure: no state, no I/O, safe to call concurrently.
"""

import math
from dataclasses import dataclass
from typing import Sequence

from padelrank.exceptions import RatingCalculationError, VolatilityConvergenceError

# Conversion factor between the Glicko and Glicko-2 scales.
GLICKO2_SCALE = 173.7178
BASE_RATING = 1500.0

# The system constant, tau, constrains the change in volatility over time.
DEFAULT_TAU = 0.5
CONVERGENCE_TOLERANCE = 0.000001

# Illinois converges in well under 30 steps for any realistic input.
MAX_SOLVER_ITERATIONS = 100


def to_mu(rating: float) -> float:
    """Converts a Glicko rating to the Glicko-2 ``mu`` scale."""
    return (rating - BASE_RATING) / GLICKO2_SCALE


def to_phi(rd: float) -> float:
    """Converts a Glicko rating deviation to the Glicko-2 ``phi`` scale."""
    return rd / GLICKO2_SCALE


def to_rating(mu: float) -> float:
    return mu * GLICKO2_SCALE + BASE_RATING


def to_rd(phi: float) -> float:
    return phi * GLICKO2_SCALE


def g(phi: float) -> float:
    """The g() function: dampens an opponent's impact as their RD grows."""
    return 1 / math.sqrt(1 + 3 * phi**2 / math.pi**2)


def E(mu: float, opp_mu: float, opp_phi: float) -> float:
    """The E() function, expected score against one opponent in (0, 1)."""
    return 1 / (1 + math.exp(-g(opp_phi) * (mu - opp_mu)))


def variance(mu: float, opp_mus: Sequence[float], opp_phis: Sequence[float]) -> float:
    """Step 3: the estimated variance ``v`` of the player's rating.

    Raises:
        RatingCalculationError: If there are no opponents. Callers handle the
            "no games played" case before reaching this point.
    """
    if not opp_mus:
        raise RatingCalculationError("Variance requires at least one opponent")

    v_inv = 0.0
    for mu_j, phi_j in zip(opp_mus, opp_phis):
        e_j = E(mu, mu_j, phi_j)
        v_inv += g(phi_j) ** 2 * e_j * (1 - e_j)
    return 1 / v_inv


def delta(
    v: float,
    mu: float,
    opp_mus: Sequence[float],
    opp_phis: Sequence[float],
    scores: Sequence[float],
) -> float:
    """Step 4: the estimated improvement ``delta``."""
    total = 0.0
    for mu_j, phi_j, score in zip(opp_mus, opp_phis, scores):
        total += g(phi_j) * (score - E(mu, mu_j, phi_j))
    return v * total


@dataclass(frozen=True)
class VolatilityBracket:
    """Final state of the volatility root-find.

    Attributes:
        lower: The converged ``A`` end of the bracket.
        upper: The converged ``B`` end of the bracket.
        iterations: Number of regula falsi steps taken.
    """

    lower: float
    upper: float
    iterations: int

    @property
    def width(self) -> float:
        return abs(self.upper - self.lower)

    @property
    def volatility(self) -> float:
        return math.exp(self.lower / 2)


def solve_volatility_bracket(
    delta_value: float,
    phi: float,
    v: float,
    vol: float,
    tau: float = DEFAULT_TAU,
    epsilon: float = CONVERGENCE_TOLERANCE,
    max_iterations: int = MAX_SOLVER_ITERATIONS,
) -> VolatilityBracket:
    """
    Step 5: locates the root of f(x) with the Illinois variant of regula falsi.
    This is the most complex step of the Glicko-2 calculation.
    """
    a = math.log(vol**2)
    delta_sq = delta_value**2
    phi_sq = phi**2
    tau_sq = tau**2

    def f(x: float) -> float:
        ex = math.exp(x)
        return (
            ex * (delta_sq - phi_sq - v - ex) / (2 * (phi_sq + v + ex) ** 2)
            - (x - a) / tau_sq
        )

    # Initial bracket
    A = a
    if delta_sq > phi_sq + v:
        B = math.log(delta_sq - phi_sq - v)
    else:
        k = 1
        while f(a - k * tau) < 0:
            k += 1
        B = a - k * tau

    f_A = f(A)
    f_B = f(B)
    iterations = 0

    while abs(B - A) > epsilon:
        if iterations >= max_iterations:
            raise VolatilityConvergenceError(iterations, abs(B - A))
        C = A + (A - B) * f_A / (f_B - f_A)
        f_C = f(C)
        if f_C * f_B <= 0:
            A = B
            f_A = f_B
        else:
            f_A /= 2
        B = C
        f_B = f_C
        iterations += 1

    return VolatilityBracket(lower=A, upper=B, iterations=iterations)


def solve_volatility(
    delta_value: float,
    phi: float,
    v: float,
    vol: float,
    tau: float = DEFAULT_TAU,
) -> float:
    """Returns the new volatility ``sigma'`` for one rating period."""
    return solve_volatility_bracket(delta_value, phi, v, vol, tau).volatility
