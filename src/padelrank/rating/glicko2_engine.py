# src/padelrank/rating/glicko2_engine.py

"""
The Glicko-2 rating engine for padel doubles.

The numeric steps live in ``glicko2_math``; this module turns them into a
single-player update and into the four-player update of a doubles match.
Nothing here touches the database: the validation service feeds ratings in
and persists what comes out.
"""

import math
from dataclasses import dataclass
from typing import NamedTuple, Sequence

from padelrank.rating import glicko2_math as gm

DEFAULT_RATING = 1500.0
DEFAULT_RD = 350.0
DEFAULT_VOL = 0.06

# Uncertainty never grows beyond the value a brand new player starts with.
MAX_RD = 350.0


@dataclass(frozen=True)
class GlickoRating:
    """Represents a player's rating in the standard Glicko scale."""

    rating: float = DEFAULT_RATING
    rd: float = DEFAULT_RD
    vol: float = DEFAULT_VOL

    def as_dict(self) -> dict[str, float]:
        return {"rating": self.rating, "rd": self.rd, "vol": self.vol}

    @classmethod
    def from_dict(cls, data: dict) -> "GlickoRating":
        """Builds a rating from a stored ``rating_info`` blob, filling gaps."""
        return cls(
            rating=float(data.get("rating", DEFAULT_RATING)),
            rd=float(data.get("rd", DEFAULT_RD)),
            vol=float(data.get("vol", DEFAULT_VOL)),
        )


class MatchRatings(NamedTuple):
    """Updated ratings for the four slots of a doubles match."""

    player1: GlickoRating
    player2: GlickoRating
    player3: GlickoRating
    player4: GlickoRating


class Glicko2Engine:
    """Encapsulates the Glicko-2 calculation logic."""

    def __init__(self, tau: float = gm.DEFAULT_TAU, max_rd: float = MAX_RD):
        self._tau = tau
        self._max_rd = max_rd

    def update_one_player(
        self,
        rating: float,
        rd: float,
        vol: float,
        opponent_ratings: Sequence[float],
        opponent_rds: Sequence[float],
        scores: Sequence[float],
    ) -> GlickoRating:
        """
        Calculates a player's new rating from one rating period of results.
        """
        # Step 1 & 2: Convert to Glicko-2 scale
        mu = gm.to_mu(rating)
        phi = gm.to_phi(rd)

        if not opponent_ratings:
            # If the player didn't play, only RD changes
            phi_star = math.sqrt(phi**2 + vol**2)
            return GlickoRating(
                rating=rating, rd=min(gm.to_rd(phi_star), self._max_rd), vol=vol
            )

        opp_mus = [gm.to_mu(r) for r in opponent_ratings]
        opp_phis = [gm.to_phi(r) for r in opponent_rds]

        # Step 3: Compute the estimated variance of the player's rating
        v = gm.variance(mu, opp_mus, opp_phis)

        # Step 4: Compute the estimated improvement in rating
        d = gm.delta(v, mu, opp_mus, opp_phis, scores)

        # Step 5: Determine the new volatility
        new_vol = gm.solve_volatility(d, phi, v, vol, self._tau)

        # Step 6: Update the rating deviation to the new pre-rating period value
        phi_star = math.sqrt(phi**2 + new_vol**2)

        # Step 7: Update the rating and rating deviation
        new_phi = 1 / math.sqrt(1 / phi_star**2 + 1 / v)
        new_mu = mu + new_phi**2 * d / v

        # Step 8: Convert back to the original Glicko scale
        return GlickoRating(
            rating=gm.to_rating(new_mu),
            rd=min(gm.to_rd(new_phi), self._max_rd),
            vol=new_vol,
        )

    def rate(
        self, player: GlickoRating, opponents: Sequence[GlickoRating], score: float
    ) -> GlickoRating:
        """Rates ``player`` against every opponent with the same result."""
        return self.update_one_player(
            player.rating,
            player.rd,
            player.vol,
            [o.rating for o in opponents],
            [o.rd for o in opponents],
            [score] * len(opponents),
        )

    def compute_match_ratings(
        self,
        player1: GlickoRating,
        player2: GlickoRating,
        player3: GlickoRating,
        player4: GlickoRating,
        team1_score: float,
        team2_score: float,
    ) -> MatchRatings:
        """
        Calculates new ratings for all four players of a doubles match.

        Team 1 is (player1, player2), team 2 is (player3, player4). The score
        pair is normalized to a result fraction and every player is rated
        against both opponents with their team's fraction. A 0-0 score means
        no games were played and all four ratings are returned unchanged.
        """
        total = team1_score + team2_score
        if total == 0:
            return MatchRatings(player1, player2, player3, player4)

        team1_result = team1_score / total
        team2_result = 1 - team1_result

        team1 = [player1, player2]
        team2 = [player3, player4]

        # Every player is rated from the pre-match ratings of the other team.
        return MatchRatings(
            player1=self.rate(player1, team2, team1_result),
            player2=self.rate(player2, team2, team1_result),
            player3=self.rate(player3, team1, team2_result),
            player4=self.rate(player4, team1, team2_result),
        )


_default_engine = Glicko2Engine()


def update_one_player(
    rating: float,
    rd: float,
    vol: float,
    opponent_ratings: Sequence[float],
    opponent_rds: Sequence[float],
    scores: Sequence[float],
) -> GlickoRating:
    """Module-level shortcut using the default tau."""
    return _default_engine.update_one_player(
        rating, rd, vol, opponent_ratings, opponent_rds, scores
    )


def compute_match_ratings(
    player1: GlickoRating,
    player2: GlickoRating,
    player3: GlickoRating,
    player4: GlickoRating,
    team1_score: float,
    team2_score: float,
) -> MatchRatings:
    """Module-level shortcut using the default tau."""
    return _default_engine.compute_match_ratings(
        player1, player2, player3, player4, team1_score, team2_score
    )


# ===============================================
# == Display helpers
# ===============================================

_RATING_TIERS = (
    (1300, "Beginner"),
    (1500, "Intermediate"),
    (1700, "Advanced"),
    (1900, "Expert"),
    (2100, "Professional"),
)


def _coerce_rating(rating: float | str) -> float:
    try:
        value = float(rating)
    except (TypeError, ValueError):
        return DEFAULT_RATING
    return value if math.isfinite(value) else DEFAULT_RATING


def format_rating(rating: float | str) -> str:
    """Rounds a rating half up for display; unparsable input shows the default."""
    return str(math.floor(_coerce_rating(rating) + 0.5))


def describe_rating(rating: float | str) -> str:
    """Maps a rating to its skill tier label."""
    value = _coerce_rating(rating)
    for upper_bound, label in _RATING_TIERS:
        if value < upper_bound:
            return label
    return "Elite"
