"""Winner propagation through a bracket.

Every operation here takes a :class:`~bracket_pool.bracket.model.Bracket`
and returns a new one; the input is never modified.  The rules:

1. The winner of matchup *i* in round *r* is written into slot ``i % 2`` of
   matchup ``i // 2`` in round *r + 1*, except for the layout's convergence
   round, whose destinations come from the semifinal assignment table.
2. If that slot previously held a different team, the destination's winner
   is cleared and the clearing cascades: each cleared matchup empties the
   slot it fed and clears that matchup's winner, stopping at the first
   matchup that has no winner.
3. The terminal winner is mirrored into ``champion_pick`` /
   ``champion_seed``.

Missing matchups are created on demand, so propagation works on partially
built brackets as well as repaired ones.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from bracket_pool.bracket.layout import BracketLayout
from bracket_pool.bracket.model import Bracket, Matchup, repair

logger = logging.getLogger(__name__)

_Rounds = dict[str, list[Matchup]]


def _mutable_rounds(bracket: Bracket) -> _Rounds:
    return {key: list(matchups) for key, matchups in bracket.rounds.items()}


def _row(rounds: _Rounds, key: str, index: int) -> list[Matchup]:
    """Return round *key*, extended with blank matchups so *index* exists."""
    row = rounds.setdefault(key, [])
    row.extend(Matchup() for _ in range(index + 1 - len(row)))
    return row


def _finish(bracket: Bracket, rounds: _Rounds, layout: BracketLayout) -> Bracket:
    final_row = rounds.get(layout.terminal_key, [])
    final = final_row[0] if final_row else Matchup()
    return bracket.model_copy(
        update={
            "rounds": {key: tuple(row) for key, row in rounds.items()},
            "champion_pick": final.winner if final.is_decided else "",
            "champion_seed": final.winner_seed if final.is_decided else None,
        }
    )


def _check_index(layout: BracketLayout, round_index: int, matchup_index: int) -> None:
    size = layout.rounds[round_index].size
    if not 0 <= matchup_index < size:
        key = layout.rounds[round_index].key
        msg = f"Matchup index {matchup_index} out of range for {key!r} (size {size})"
        raise ValueError(msg)


def _clear_matchup(rounds: _Rounds, layout: BracketLayout, round_index: int, matchup_index: int) -> None:
    """Clear a winner and empty every slot it transitively fed."""
    row = _row(rounds, layout.rounds[round_index].key, matchup_index)
    row[matchup_index] = row[matchup_index].with_winner("", None)

    target = layout.destination(round_index, matchup_index)
    if target is None:
        return
    next_row = _row(rounds, layout.rounds[round_index + 1].key, target.matchup_index)
    fed = next_row[target.matchup_index]
    next_row[target.matchup_index] = fed.with_slot(target.slot, "", None)
    if fed.is_decided:
        _clear_matchup(rounds, layout, round_index + 1, target.matchup_index)


def advance_winner(
    bracket: Bracket,
    layout: BracketLayout,
    round_ref: str | int,
    matchup_index: int,
    winner: str,
    winner_seed: int | None = None,
) -> Bracket:
    """Record *winner* for one matchup and push it into the next round.

    An empty (or blank) *winner* is the same as :func:`clear_winner`.

    Args:
        bracket: Bracket to update (left unchanged).
        layout: Topology that decides where the winner goes.
        round_ref: Round key or index.
        matchup_index: Index within the round.
        winner: Team name of the winner.
        winner_seed: Seed of the winner, if known.

    Returns:
        The updated bracket.

    Raises:
        ValueError: If the round or matchup index does not exist in *layout*.

    Example:
        >>> from bracket_pool.bracket.layout import build_layout
        >>> from bracket_pool.bracket.model import empty_bracket
        >>> layout = build_layout(4)
        >>> b = advance_winner(empty_bracket(layout), layout, 0, 0, "A", 1)
        >>> b.round("Round2")[0].team1
        'A'
    """
    round_index = layout.round_index(round_ref)
    _check_index(layout, round_index, matchup_index)
    if not winner.strip():
        return clear_winner(bracket, layout, round_index, matchup_index)

    rounds = _mutable_rounds(bracket)
    row = _row(rounds, layout.rounds[round_index].key, matchup_index)
    row[matchup_index] = row[matchup_index].with_winner(winner, winner_seed)

    target = layout.destination(round_index, matchup_index)
    if target is not None:
        next_index = round_index + 1
        next_row = _row(rounds, layout.rounds[next_index].key, target.matchup_index)
        current = next_row[target.matchup_index]
        previous, _ = current.slot_team(target.slot)
        next_row[target.matchup_index] = current.with_slot(target.slot, winner, winner_seed)
        if previous != winner:
            logger.debug(
                "Slot %d of %s[%d] changed from %r to %r; clearing downstream",
                target.slot,
                layout.rounds[next_index].key,
                target.matchup_index,
                previous,
                winner,
            )
            _clear_matchup(rounds, layout, next_index, target.matchup_index)
    return _finish(bracket, rounds, layout)


def clear_winner(
    bracket: Bracket,
    layout: BracketLayout,
    round_ref: str | int,
    matchup_index: int,
) -> Bracket:
    """Remove a matchup's winner and everything that depended on it."""
    round_index = layout.round_index(round_ref)
    _check_index(layout, round_index, matchup_index)
    rounds = _mutable_rounds(bracket)
    _clear_matchup(rounds, layout, round_index, matchup_index)
    return _finish(bracket, rounds, layout)


def set_series_length(
    bracket: Bracket,
    layout: BracketLayout,
    round_ref: str | int,
    matchup_index: int,
    num_games: int | None,
) -> Bracket:
    """Record the (predicted or actual) length of a best-of-N series.

    Raises:
        ValueError: If the round is not a series round or *num_games* is
            not positive.
    """
    round_index = layout.round_index(round_ref)
    _check_index(layout, round_index, matchup_index)
    spec = layout.rounds[round_index]
    if not spec.is_series:
        msg = f"Round {spec.key!r} is not a series round"
        raise ValueError(msg)
    if num_games is not None and num_games < 1:
        msg = f"num_games must be positive, got {num_games}"
        raise ValueError(msg)
    rounds = _mutable_rounds(bracket)
    row = _row(rounds, spec.key, matchup_index)
    row[matchup_index] = row[matchup_index].model_copy(update={"num_games": num_games})
    return _finish(bracket, rounds, layout)


def set_secondary_pick(bracket: Bracket, layout: BracketLayout, pick: str) -> Bracket:
    """Record the secondary prediction (e.g. Finals MVP).

    Raises:
        ValueError: If *layout* has no secondary prediction.
    """
    if layout.secondary_label is None:
        msg = f"Layout {layout.name!r} has no secondary prediction"
        raise ValueError(msg)
    return bracket.model_copy(update={"secondary_pick": pick})


def rebuild_downstream(bracket: Bracket, layout: BracketLayout) -> Bracket:
    """Recompute every later-round slot from the recorded winners.

    Used after bulk edits (for example an administrator re-seeding the
    first round).  Winners that are no longer one of their matchup's
    participants are cleared.
    """
    repaired = repair(bracket, layout)
    rounds = _mutable_rounds(repaired)
    for round_index in range(layout.terminal_index):
        next_row = rounds[layout.rounds[round_index + 1].key]
        for matchup_index, matchup in enumerate(rounds[layout.rounds[round_index].key]):
            target = layout.destination(round_index, matchup_index)
            if target is None:
                continue
            team, seed = (matchup.winner, matchup.winner_seed) if matchup.is_decided else ("", None)
            next_row[target.matchup_index] = next_row[target.matchup_index].with_slot(target.slot, team, seed)
        for j, fed in enumerate(next_row):
            if fed.is_decided and fed.winner.strip() not in fed.participants:
                next_row[j] = fed.with_winner("", None)
    return _finish(repaired, rounds, layout)


def seed_first_round(
    layout: BracketLayout,
    teams: Mapping[str, Mapping[int, str]],
    existing: Bracket | None = None,
) -> Bracket:
    """Fill the first round from seeded team lists.

    Args:
        layout: Target layout; its ``seed_pairings`` define the first-round
            order within each region.
        teams: ``{region: {seed: team}}``.  Layouts without regions take a
            single entry under any name.
        existing: Optional bracket whose picks are carried over.  A
            first-round winner survives when it is still one of the two
            teams of its matchup; later rounds are then rebuilt.

    Raises:
        ValueError: If the regions given do not match the layout.
    """
    regions = layout.regions or tuple(teams)[:1]
    if set(regions) != set(teams) or len(regions) * len(layout.seed_pairings) != layout.rounds[0].size:
        msg = f"teams must provide regions {list(layout.regions) or ['<any single name>']}, got {list(teams)}"
        raise ValueError(msg)

    first_key = layout.rounds[0].key
    previous = existing.round(first_key) if existing is not None else ()
    first_round: list[Matchup] = []
    for region in regions:
        by_seed = teams[region]
        for high, low in layout.seed_pairings:
            team1, team2 = by_seed.get(high, ""), by_seed.get(low, "")
            matchup = Matchup(
                team1=team1,
                team1_seed=high if team1 else None,
                team2=team2,
                team2_seed=low if team2 else None,
            )
            index = len(first_round)
            if index < len(previous) and previous[index].is_decided:
                kept = previous[index].winner.strip()
                if kept in matchup.participants:
                    seed = high if kept == team1.strip() else low
                    matchup = matchup.with_winner(previous[index].winner, seed)
            first_round.append(matchup)

    base = existing if existing is not None else Bracket()
    return rebuild_downstream(base.with_round(first_key, tuple(first_round)), layout)
