"""Document path templates.

The defaults reproduce the collection layout of the hosted deployment
(``leagues/{id}/gameData/current`` for the official bracket,
``gameStats/root/userStats/{uid}`` for user statistics, ...).  Tests and
alternative deployments can pass their own :class:`StorePaths`.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StorePaths:
    """Format strings for every document the engine reads or writes."""

    league: str = "leagues/{league_id}"
    official_bracket: str = "leagues/{league_id}/gameData/current"
    user_brackets: str = "leagues/{league_id}/userData"
    scoring_settings: str = "leagues/{league_id}/settings/scoring"
    adjustments: str = "leagues/{league_id}/customScores"
    league_stats: str = "gameStats/root/leagues/{league_id}"
    user_stats: str = "gameStats/root/userStats/{user_id}"

    def league_doc(self, league_id: str) -> str:
        return self.league.format(league_id=league_id)

    def official(self, league_id: str) -> str:
        return self.official_bracket.format(league_id=league_id)

    def user_bracket_collection(self, league_id: str) -> str:
        return self.user_brackets.format(league_id=league_id)

    def user_bracket(self, league_id: str, user_id: str) -> str:
        return f"{self.user_bracket_collection(league_id)}/{user_id}"

    def settings(self, league_id: str) -> str:
        return self.scoring_settings.format(league_id=league_id)

    def adjustment_collection(self, league_id: str) -> str:
        return self.adjustments.format(league_id=league_id)

    def stats_for_league(self, league_id: str) -> str:
        return self.league_stats.format(league_id=league_id)

    def stats_for_user(self, user_id: str) -> str:
        return self.user_stats.format(user_id=user_id)


def document_id(path: str) -> str:
    """Last segment of a document path."""
    return path.rstrip("/").rsplit("/", 1)[-1]
