"""Read-only bracket queries: completeness, progress and pick comparison."""

from __future__ import annotations

from dataclasses import dataclass, field

from bracket_pool.bracket.layout import BracketLayout
from bracket_pool.bracket.model import Bracket, same_team


def is_bracket_complete(bracket: Bracket, layout: BracketLayout) -> bool:
    """``True`` when every matchup of every round has a winner.

    Layouts with a secondary prediction also require ``secondary_pick``.
    """
    for spec in layout.rounds:
        matchups = bracket.round(spec.key)
        if len(matchups) < spec.size or not all(m.is_decided for m in matchups[: spec.size]):
            return False
    if layout.secondary_label is not None and not bracket.secondary_pick.strip():
        return False
    return True


def is_tournament_complete(official: Bracket, layout: BracketLayout) -> bool:
    """``True`` once the official terminal matchup has a winner."""
    final = official.terminal(layout)
    return final is not None and final.is_decided


def decided_games(bracket: Bracket, layout: BracketLayout) -> dict[str, int]:
    """Number of decided matchups per round key."""
    return {
        spec.key: sum(1 for m in bracket.round(spec.key)[: spec.size] if m.is_decided)
        for spec in layout.rounds
    }


@dataclass(frozen=True)
class TournamentProgress:
    """How far the official bracket has progressed.

    Attributes:
        completed_games: Decided official matchups.
        total_games: All matchups in the layout.
        current_round: First round with an undecided matchup, or ``None``
            when the tournament is over.
        completed: Whether the terminal matchup is decided.
    """

    completed_games: int
    total_games: int
    current_round: str | None
    completed: bool

    @property
    def percent(self) -> float:
        if self.total_games == 0:
            return 0.0
        return 100.0 * self.completed_games / self.total_games


def tournament_progress(official: Bracket, layout: BracketLayout) -> TournamentProgress:
    per_round = decided_games(official, layout)
    current = next((spec.key for spec in layout.rounds if per_round[spec.key] < spec.size), None)
    return TournamentProgress(
        completed_games=sum(per_round.values()),
        total_games=layout.total_games,
        current_round=current,
        completed=is_tournament_complete(official, layout),
    )


@dataclass(frozen=True)
class RoundAgreement:
    matches: int = 0
    possible: int = 0

    @property
    def percentage(self) -> float:
        return 100.0 * self.matches / self.possible if self.possible else 0.0


@dataclass(frozen=True)
class BracketComparison:
    """Pick agreement between two brackets.

    Only matchups where both brackets have a winner are compared.
    """

    matches: int
    possible: int
    by_round: dict[str, RoundAgreement] = field(default_factory=dict)

    @property
    def percentage(self) -> float:
        return 100.0 * self.matches / self.possible if self.possible else 0.0


def compare_brackets(first: Bracket, second: Bracket, layout: BracketLayout) -> BracketComparison:
    """Measure how many winner picks two brackets share, overall and per round."""
    by_round: dict[str, RoundAgreement] = {}
    for spec in layout.rounds:
        matches = possible = 0
        for a, b in zip(first.round(spec.key), second.round(spec.key)):
            if a.is_decided and b.is_decided:
                possible += 1
                matches += same_team(a.winner, b.winner)
        by_round[spec.key] = RoundAgreement(matches, possible)
    return BracketComparison(
        matches=sum(r.matches for r in by_round.values()),
        possible=sum(r.possible for r in by_round.values()),
        by_round=by_round,
    )


def count_correct_picks(user: Bracket, official: Bracket, layout: BracketLayout) -> dict[str, int]:
    """Correct winner picks per round, counting only decided official matchups."""
    return {
        spec.key: sum(
            1
            for u, o in zip(user.round(spec.key), official.round(spec.key))
            if o.is_decided and same_team(u.winner, o.winner)
        )
        for spec in layout.rounds
    }


def count_correct_series(user: Bracket, official: Bracket, layout: BracketLayout) -> int:
    """Series where both the winner and the exact length were predicted."""
    total = 0
    for spec in layout.rounds:
        if not spec.is_series:
            continue
        for u, o in zip(user.round(spec.key), official.round(spec.key)):
            if (
                o.is_decided
                and same_team(u.winner, o.winner)
                and o.num_games is not None
                and u.num_games == o.num_games
            ):
                total += 1
    return total
