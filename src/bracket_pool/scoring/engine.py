"""Scoring engine: grade a user's bracket against the official bracket.

:func:`score` is a pure function of ``(user, official, config, layout)``.
Every round, the terminal one included, is graded the same way:

* matchups without an official winner are not yet graded and contribute
  nothing, not even to ``possible``;
* a graded matchup adds the round's point value to ``possible``, and to
  ``base`` when the user's pick matches (trimmed comparison);
* a correct pick may also earn an upset bonus (official seeds, favourite =
  lower seed number) and a series-length bonus (exact length with the same
  two participants, either order).

The terminal round additionally carries ``config.champion_bonus``.  The
secondary prediction is graded outside the round table, in the ``other``
bucket.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from bracket_pool.bracket.layout import BracketLayout
from bracket_pool.bracket.model import Bracket, Matchup, same_team
from bracket_pool.scoring.config import ScoringConfig


class RoundScore(BaseModel):
    """Per-round (or secondary-bucket) score breakdown."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    correct: int = 0
    base: float = 0.0
    bonus: float = 0.0
    total: float = 0.0
    possible: float = 0.0
    upset_bonus: float = Field(default=0.0, alias="upsetBonus")
    series_bonus: float = Field(default=0.0, alias="seriesBonus")


class ScoreBreakdown(BaseModel):
    """Full score of one bracket.

    ``bonus_points`` is the sum of upset and series-length bonuses;
    ``secondary_points`` is kept apart.  ``max_possible`` is the optimistic
    number of points still available from ungraded matchups.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    total: float = 0.0
    base_points: float = Field(default=0.0, alias="basePoints")
    bonus_points: float = Field(default=0.0, alias="bonusPoints")
    upset_points: float = Field(default=0.0, alias="upsetPoints")
    series_length_points: float = Field(default=0.0, alias="seriesLengthPoints")
    secondary_points: float = Field(default=0.0, alias="secondaryPoints")
    correct_picks: int = Field(default=0, alias="correctPicks")
    round_breakdown: dict[str, RoundScore] = Field(default_factory=dict, alias="roundBreakdown")
    other: RoundScore | None = None
    max_possible: float = Field(default=0.0, alias="maxPossible")

    @property
    def possible_total(self) -> float:
        """Best achievable final score: points so far plus everything still open."""
        return self.total + self.max_possible

    def to_document(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, mode="json")


def _same_participants(user: Matchup, official: Matchup, *, case_sensitive: bool) -> bool:
    def norm(m: Matchup) -> frozenset[str]:
        return frozenset(p if case_sensitive else p.casefold() for p in m.participants)

    official_teams = norm(official)
    return len(official_teams) == 2 and norm(user) == official_teams


def _round_point_value(config: ScoringConfig, layout: BracketLayout, round_key: str) -> float:
    extra = config.champion_bonus if round_key == layout.terminal_key else 0.0
    return config.point_value(round_key) + extra


def _score_round(
    user_round: tuple[Matchup, ...],
    official_round: tuple[Matchup, ...],
    size: int,
    point_value: float,
    series_value: float,
    config: ScoringConfig,
) -> RoundScore:
    correct = 0
    base = possible = upset = series = 0.0
    for index, official in enumerate(official_round[:size]):
        if not official.is_decided:
            continue
        possible += point_value
        user = user_round[index] if index < len(user_round) else None
        if user is None or not same_team(
            user.winner, official.winner, case_sensitive=config.case_sensitive_picks
        ):
            continue
        correct += 1
        base += point_value
        upset += config.upset_bonus(official.winner_seed, official.team1_seed, official.team2_seed)
        if (
            series_value
            and official.num_games is not None
            and user.num_games == official.num_games
            and _same_participants(user, official, case_sensitive=config.case_sensitive_picks)
        ):
            series += series_value
    return RoundScore(
        correct=correct,
        base=base,
        bonus=upset + series,
        total=base + upset + series,
        possible=possible,
        upset_bonus=upset,
        series_bonus=series,
    )


def max_remaining_points(
    user: Bracket,
    official: Bracket,
    config: ScoringConfig,
    layout: BracketLayout,
) -> float:
    """Optimistic upper bound on the points *user* can still earn.

    Sums the point value of every matchup the official bracket has not
    decided yet but the user has picked, plus the series bonus when the user
    also predicted a length, plus the secondary-pick value while that result
    is open.  Graded matchups are never counted.
    """
    remaining = 0.0
    for spec in layout.rounds:
        point_value = _round_point_value(config, layout, spec.key)
        series_value = config.series_bonus(spec.key)
        user_round = user.round(spec.key)
        official_round = official.round(spec.key)
        for index in range(spec.size):
            official_matchup = official_round[index] if index < len(official_round) else None
            if official_matchup is not None and official_matchup.is_decided:
                continue
            pick = user_round[index] if index < len(user_round) else None
            if pick is None or not pick.is_decided:
                continue
            remaining += point_value
            if series_value and pick.num_games is not None:
                remaining += series_value
    secondary_open = not official.secondary_pick.strip()
    if layout.secondary_label is not None and secondary_open and user.secondary_pick.strip():
        remaining += config.secondary_pick_points
    return remaining


def score(user: Bracket, official: Bracket, config: ScoringConfig, layout: BracketLayout) -> ScoreBreakdown:
    """Grade *user* against *official*.

    Deterministic and side-effect free: identical inputs always give an
    identical :class:`ScoreBreakdown`.

    Example:
        >>> from bracket_pool.bracket import build_layout, empty_bracket
        >>> from bracket_pool.scoring.config import default_config
        >>> layout = build_layout(4)
        >>> blank = empty_bracket(layout)
        >>> score(blank, blank, default_config(layout), layout).total
        0.0
    """
    breakdown: dict[str, RoundScore] = {}
    for spec in layout.rounds:
        breakdown[spec.key] = _score_round(
            user.round(spec.key),
            official.round(spec.key),
            spec.size,
            _round_point_value(config, layout, spec.key),
            config.series_bonus(spec.key),
            config,
        )

    other: RoundScore | None = None
    secondary = 0.0
    if layout.secondary_label is not None and official.secondary_pick.strip():
        hit = same_team(
            user.secondary_pick, official.secondary_pick, case_sensitive=config.case_sensitive_picks
        )
        secondary = config.secondary_pick_points if hit else 0.0
        other = RoundScore(
            correct=int(hit),
            base=secondary,
            total=secondary,
            possible=config.secondary_pick_points,
        )

    base = sum(r.base for r in breakdown.values())
    upset = sum(r.upset_bonus for r in breakdown.values())
    series = sum(r.series_bonus for r in breakdown.values())
    return ScoreBreakdown(
        total=base + upset + series + secondary,
        base_points=base,
        bonus_points=upset + series,
        upset_points=upset,
        series_length_points=series,
        secondary_points=secondary,
        correct_picks=sum(r.correct for r in breakdown.values()),
        round_breakdown=breakdown,
        other=other,
        max_possible=max_remaining_points(user, official, config, layout),
    )
