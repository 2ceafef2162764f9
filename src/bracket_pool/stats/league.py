"""League aggregation: score every entry, rank them and summarise the league.

:func:`aggregate_league` is the single entry point.  It scores each user's
bracket independently (optionally in parallel through ``joblib``), applies
manual adjustments, ranks by score with a stable sort, and derives the
league-level statistics stored in a :class:`LeagueStatsDocument`:

* score distribution (mean, median, lowest, highest);
* pick accuracy, overall and per round;
* upsets found in the official bracket alone;
* a seed-performance table built from the official bracket alone;
* tournament status, progress, champion and the last-but-one round's
  participants (the Final Four in an NCAA bracket).

A user whose scoring raises is logged with their id and left out of the
rankings; their id is listed in ``failed_users``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

import joblib  # type: ignore[import-untyped]
import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from bracket_pool.bracket.analysis import tournament_progress
from bracket_pool.bracket.layout import BracketLayout
from bracket_pool.bracket.model import Bracket, Matchup
from bracket_pool.errors import UserComputationError
from bracket_pool.scoring.adjustments import ScoreAdjustment, total_adjustment
from bracket_pool.scoring.config import ScoringConfig
from bracket_pool.scoring.engine import ScoreBreakdown, score

logger = logging.getLogger(__name__)

#: Pseudo-round recorded for the terminal winner in the seed table.
CHAMPION_LABEL = "Champion"

#: Number of places listed in ``LeagueStatsDocument.winners``.
TOP_PLACES = 3

# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BracketEntry:
    """One user's bracket in a league."""

    user_id: str
    bracket: Bracket
    user_name: str = ""


# ---------------------------------------------------------------------------
# Output documents
# ---------------------------------------------------------------------------


class _Doc(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class PlayerRanking(_Doc):
    """A ranked player.  ``score`` includes manual adjustments."""

    user_id: str = Field(alias="userId")
    user_name: str = Field(default="", alias="userName")
    rank: int
    score: float
    raw_score: float = Field(alias="rawScore")
    adjustment: float = 0.0
    correct_picks: int = Field(alias="correctPicks")
    graded_picks: int = Field(alias="gradedPicks")
    accuracy: float
    max_possible: float = Field(alias="maxPossible")
    breakdown: ScoreBreakdown


class ScoreDistribution(_Doc):
    average_score: float = Field(alias="averageScore")
    median_score: float = Field(alias="medianScore")
    lowest_score: float = Field(alias="lowestScore")
    highest_score: float = Field(alias="highestScore")


class RoundStats(_Doc):
    """Pick accuracy for one round across every ranked player."""

    label: str
    correct_picks: int = Field(alias="correctPicks")
    possible_picks: int = Field(alias="possiblePicks")
    accuracy: float
    avg_points_per_player: float = Field(alias="avgPointsPerPlayer")
    total_games: int = Field(alias="totalGames")
    completed_games: int = Field(alias="completedGames")
    point_value: float = Field(alias="pointValue")


class UpsetStats(_Doc):
    total_upsets: int = Field(alias="totalUpsets")
    upsets_by_round: dict[str, int] = Field(alias="upsetsByRound")


class SeedPerformance(_Doc):
    wins: int = 0
    losses: int = 0
    rounds_reached: dict[str, int] = Field(default_factory=dict, alias="roundsReached")
    furthest_round: str | None = Field(default=None, alias="furthestRound")
    win_rate: float = Field(default=0.0, alias="winRate")


class TeamRef(_Doc):
    name: str
    seed: int | None = None


class ProgressStats(_Doc):
    completed_games: int = Field(alias="completedGames")
    total_games: int = Field(alias="totalGames")
    percentage: float
    current_round: str | None = Field(default=None, alias="currentRound")


class LeagueStatsDocument(_Doc):
    """Snapshot of a league, regenerated in full on every preview or finalize."""

    league_id: str = Field(alias="leagueId")
    game_type_id: str = Field(alias="gameTypeId")
    season_id: str = Field(alias="seasonId")
    generated_at: datetime = Field(alias="generatedAt")
    completed: bool
    tournament_status: str = Field(alias="tournamentStatus")
    progress: ProgressStats
    champion: TeamRef | None = None
    semifinalists: list[TeamRef] = Field(default_factory=list)
    secondary_result: str = Field(default="", alias="secondaryResult")
    player_count: int = Field(alias="playerCount")
    rankings: list[PlayerRanking]
    winners: list[PlayerRanking]
    distribution: ScoreDistribution
    overall_accuracy: float = Field(alias="overallAccuracy")
    round_stats: dict[str, RoundStats] = Field(alias="roundStats")
    upsets: UpsetStats
    seed_performance: dict[str, SeedPerformance] = Field(alias="seedPerformance")
    failed_users: list[str] = Field(default_factory=list, alias="failedUsers")

    def ranking_for(self, user_id: str) -> PlayerRanking | None:
        return next((r for r in self.rankings if r.user_id == user_id), None)

    def to_document(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Per-user scoring
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Scored:
    entry: BracketEntry
    breakdown: ScoreBreakdown | None
    error: BaseException | None = None


def _score_entry(
    entry: BracketEntry, official: Bracket, config: ScoringConfig, layout: BracketLayout
) -> _Scored:
    try:
        return _Scored(entry, score(entry.bracket, official, config, layout))
    except Exception as exc:  # noqa: BLE001
        return _Scored(entry, None, exc)


def score_entries(
    entries: Sequence[BracketEntry],
    official: Bracket,
    config: ScoringConfig,
    layout: BracketLayout,
    *,
    n_jobs: int = 1,
) -> tuple[list[tuple[BracketEntry, ScoreBreakdown]], list[UserComputationError]]:
    """Score every entry, isolating failures.

    Results keep the input order.  Failures are returned (and logged) as
    :class:`~bracket_pool.errors.UserComputationError` instead of raised.
    """
    if n_jobs == 1 or len(entries) < 2:
        results = [_score_entry(e, official, config, layout) for e in entries]
    else:
        results = joblib.Parallel(n_jobs=n_jobs, prefer="threads")(
            joblib.delayed(_score_entry)(e, official, config, layout) for e in entries
        )

    scored: list[tuple[BracketEntry, ScoreBreakdown]] = []
    failures: list[UserComputationError] = []
    for result in results:
        if result.error is not None:
            logger.warning("Excluding user %s: %s", result.entry.user_id, result.error)
            failures.append(UserComputationError(result.entry.user_id, result.error))
        elif result.breakdown is not None:
            scored.append((result.entry, result.breakdown))
    return scored, failures


# ---------------------------------------------------------------------------
# Official-bracket statistics
# ---------------------------------------------------------------------------


def is_upset(matchup: Matchup) -> bool:
    """A decided game won by the higher seed number.  Needs all three seeds."""
    if not matchup.is_decided or not matchup.winner_seed or not matchup.team1_seed or not matchup.team2_seed:
        return False
    return matchup.winner_seed > min(matchup.team1_seed, matchup.team2_seed)


def count_upsets(official: Bracket, layout: BracketLayout) -> UpsetStats:
    by_round = {
        spec.key: sum(is_upset(m) for m in official.round(spec.key)[: spec.size]) for spec in layout.rounds
    }
    return UpsetStats(total_upsets=sum(by_round.values()), upsets_by_round=by_round)


def _loser_seed(matchup: Matchup) -> int | None:
    winner = matchup.winner.strip()
    if winner == matchup.team1.strip():
        return matchup.team2_seed
    return matchup.team1_seed


def seed_performance(official: Bracket, layout: BracketLayout) -> dict[str, SeedPerformance]:
    """Wins, losses and furthest round for every seed ``1 .. layout.max_seed``.

    A seed reaches a round by appearing in it.  The terminal winner also
    reaches :data:`CHAMPION_LABEL`.  Games whose recorded winner is not one
    of the two participants are skipped with a warning, so an inconsistent
    terminal result never produces a champion.
    """
    wins = dict.fromkeys(range(1, layout.max_seed + 1), 0)
    losses = dict.fromkeys(wins, 0)
    reached: dict[int, dict[str, int]] = {seed: {} for seed in wins}

    def credit(seed: int | None, round_key: str) -> None:
        if seed in reached:
            reached[seed][round_key] = reached[seed].get(round_key, 0) + 1

    for spec in layout.rounds:
        for index, matchup in enumerate(official.round(spec.key)[: spec.size]):
            credit(matchup.team1_seed, spec.key)
            credit(matchup.team2_seed, spec.key)
            if not matchup.is_decided or matchup.winner_seed not in wins:
                continue
            if matchup.winner.strip() not in matchup.participants:
                logger.warning(
                    "Official %s[%d] winner %r is not a participant; not credited",
                    spec.key,
                    index,
                    matchup.winner,
                )
                continue
            wins[matchup.winner_seed] += 1
            loser = _loser_seed(matchup)
            if loser in losses:
                losses[loser] += 1
            if spec.key == layout.terminal_key:
                reached[matchup.winner_seed][CHAMPION_LABEL] = 1

    order = [*layout.round_keys, CHAMPION_LABEL]
    table: dict[str, SeedPerformance] = {}
    for seed in wins:
        played = wins[seed] + losses[seed]
        furthest = next((key for key in reversed(order) if reached[seed].get(key)), None)
        table[str(seed)] = SeedPerformance(
            wins=wins[seed],
            losses=losses[seed],
            rounds_reached=reached[seed],
            furthest_round=furthest,
            win_rate=wins[seed] / played if played else 0.0,
        )
    return table


def semifinalists(official: Bracket, layout: BracketLayout) -> list[TeamRef]:
    """Participants of the round before the terminal one (all of them, in slot order)."""
    spec = layout.rounds[max(layout.terminal_index - 1, 0)]
    return [
        TeamRef(name=team, seed=seed)
        for matchup in official.round(spec.key)[: spec.size]
        for team, seed in (matchup.slot_team(0), matchup.slot_team(1))
        if team.strip()
    ]


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _distribution(rankings: Sequence[PlayerRanking]) -> ScoreDistribution:
    if not rankings:
        return ScoreDistribution(average_score=0.0, median_score=0.0, lowest_score=0.0, highest_score=0.0)
    scores = np.array([r.score for r in rankings], dtype=float)
    return ScoreDistribution(
        average_score=float(np.mean(scores)),
        median_score=float(scores[len(scores) // 2]),
        lowest_score=float(np.min(scores)),
        highest_score=float(np.max(scores)),
    )


def _round_stats(
    rankings: Sequence[PlayerRanking],
    official: Bracket,
    config: ScoringConfig,
    layout: BracketLayout,
) -> dict[str, RoundStats]:
    stats: dict[str, RoundStats] = {}
    players = len(rankings)
    for spec in layout.rounds:
        completed = sum(1 for m in official.round(spec.key)[: spec.size] if m.is_decided)
        correct = sum(r.breakdown.round_breakdown[spec.key].correct for r in rankings)
        points = sum(r.breakdown.round_breakdown[spec.key].total for r in rankings)
        possible = completed * players
        stats[spec.key] = RoundStats(
            label=spec.label,
            correct_picks=correct,
            possible_picks=possible,
            accuracy=correct / possible if possible else 0.0,
            avg_points_per_player=points / players if players else 0.0,
            total_games=spec.size,
            completed_games=completed,
            point_value=config.point_value(spec.key),
        )
    return stats


def season_id_for(moment: datetime) -> str:
    """Season label ``"<year-1>-<year>"`` for a timestamp."""
    return f"{moment.year - 1}-{moment.year}"


def aggregate_league(
    entries: Sequence[BracketEntry],
    official: Bracket,
    config: ScoringConfig,
    layout: BracketLayout,
    *,
    league_id: str,
    game_type_id: str | None = None,
    season_id: str | None = None,
    adjustments: Mapping[str, Sequence[ScoreAdjustment]] | None = None,
    n_jobs: int = 1,
    now: datetime | None = None,
) -> LeagueStatsDocument:
    """Score, rank and summarise a league.

    Args:
        entries: Users and their (repaired) brackets, in insertion order.
            Ties keep this order.
        official: Current official bracket.
        config: League scoring rules.
        layout: Bracket topology.
        league_id: League identifier.
        game_type_id: Game type recorded in the document (defaults to the
            layout name).
        season_id: Season label (defaults to :func:`season_id_for` of *now*).
        adjustments: Manual adjustments keyed by user id.
        n_jobs: ``joblib`` workers for per-user scoring; ``-1`` uses all
            cores.
        now: Generation timestamp (defaults to the current UTC time).

    Returns:
        The league statistics document.
    """
    generated_at = now or datetime.now(timezone.utc)
    adjustments = adjustments or {}
    scored, failures = score_entries(entries, official, config, layout, n_jobs=n_jobs)

    progress = tournament_progress(official, layout)
    graded = progress.completed_games
    provisional: list[tuple[float, float, BracketEntry, ScoreBreakdown]] = []
    for entry, breakdown in scored:
        adjustment = total_adjustment(adjustments.get(entry.user_id))
        provisional.append((breakdown.total + adjustment, adjustment, entry, breakdown))
    # sorted() is stable: equal scores keep insertion order.
    provisional = sorted(provisional, key=lambda item: item[0], reverse=True)

    rankings = [
        PlayerRanking(
            user_id=entry.user_id,
            user_name=entry.user_name,
            rank=position + 1,
            score=total,
            raw_score=breakdown.total,
            adjustment=adjustment,
            correct_picks=breakdown.correct_picks,
            graded_picks=graded,
            accuracy=breakdown.correct_picks / graded if graded else 0.0,
            max_possible=breakdown.max_possible,
            breakdown=breakdown,
        )
        for position, (total, adjustment, entry, breakdown) in enumerate(provisional)
    ]

    final = official.terminal(layout)
    champion = (
        TeamRef(name=final.winner, seed=final.winner_seed) if final is not None and final.is_decided else None
    )
    total_correct = sum(r.correct_picks for r in rankings)
    total_graded = graded * len(rankings)

    document = LeagueStatsDocument(
        league_id=league_id,
        game_type_id=game_type_id or layout.name,
        season_id=season_id or season_id_for(generated_at),
        generated_at=generated_at,
        completed=progress.completed,
        tournament_status="Completed" if progress.completed else "In Progress",
        progress=ProgressStats(
            completed_games=progress.completed_games,
            total_games=progress.total_games,
            percentage=progress.percent,
            current_round=progress.current_round,
        ),
        champion=champion,
        semifinalists=semifinalists(official, layout),
        secondary_result=official.secondary_pick,
        player_count=len(rankings),
        rankings=rankings,
        winners=rankings[:TOP_PLACES],
        distribution=_distribution(rankings),
        overall_accuracy=total_correct / total_graded if total_graded else 0.0,
        round_stats=_round_stats(rankings, official, config, layout),
        upsets=count_upsets(official, layout),
        seed_performance=seed_performance(official, layout),
        failed_users=[f.user_id for f in failures],
    )
    logger.info(
        "League %s aggregated: %d ranked, %d excluded, %d/%d games decided",
        league_id,
        len(rankings),
        len(failures),
        progress.completed_games,
        progress.total_games,
    )
    return document
