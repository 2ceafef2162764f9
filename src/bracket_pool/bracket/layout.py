"""Bracket topologies: round sequence, regions and the convergence table.

A :class:`BracketLayout` is the only place that knows the shape of a
tournament.  Everything else (repair, propagation, scoring, statistics)
walks ``layout.rounds`` in order and asks the layout where a winner goes
next, so a 4-team test bracket, the 64-team NCAA field and the 16-team NBA
playoffs are handled by the same code.

Built-in layouts are kept in a small registry:

* ``marchMadness``: 64 teams, six rounds, four regions of 16 seeds.  The
  four regional champions (``Elite8``) feed the ``FinalFour`` according to a
  configurable semifinal pairing (default South/West and East/Midwest).
* ``nbaPlayoffs``: 16 teams, four best-of-seven rounds, East/West
  conferences of 8 seeds, with a Finals MVP secondary prediction.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Layout building blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoundSpec:
    """One round of a bracket.

    Attributes:
        key: Stable document key (e.g. ``"Sweet16"``).
        label: Human-readable name (e.g. ``"Sweet 16"``).
        size: Number of matchups in the round.
        is_series: ``True`` for best-of-N rounds where a series length is
            predicted alongside the winner.
    """

    key: str
    label: str
    size: int
    is_series: bool = False


@dataclass(frozen=True)
class SlotTarget:
    """Destination of a winner: matchup index and slot (0 = team1, 1 = team2)."""

    matchup_index: int
    slot: int


@dataclass(frozen=True)
class SemifinalPairing:
    """Two regions whose champions meet; ``region1`` takes the team1 slot."""

    region1: str
    region2: str


#: Default semifinal pairing for the four NCAA regions.
DEFAULT_FINAL_FOUR: tuple[SemifinalPairing, SemifinalPairing] = (
    SemifinalPairing("South", "West"),
    SemifinalPairing("East", "Midwest"),
)

#: NCAA first-round seed pairings, in bracket order within a region.
NCAA_SEED_PAIRINGS: tuple[tuple[int, int], ...] = (
    (1, 16),
    (8, 9),
    (5, 12),
    (4, 13),
    (6, 11),
    (3, 14),
    (7, 10),
    (2, 15),
)

#: NBA first-round seed pairings within a conference.
NBA_SEED_PAIRINGS: tuple[tuple[int, int], ...] = ((1, 8), (4, 5), (3, 6), (2, 7))


def standard_seed_pairings(region_size: int) -> tuple[tuple[int, int], ...]:
    """Return the classic ``1 v N, N/2 v N/2+1, ...`` pairing for *region_size* seeds.

    The order keeps the top two seeds in opposite halves, so they can only
    meet in the region's final.

    Raises:
        ValueError: If *region_size* is not a power of two of at least 2.
    """
    if region_size < 2 or region_size & (region_size - 1):
        msg = f"region_size must be a power of two >= 2, got {region_size}"
        raise ValueError(msg)
    order = [1]
    while len(order) < region_size:
        n = 2 * len(order) + 1
        order = [s for seed in order for s in (seed, n - seed)]
    return tuple((order[i], order[i + 1]) for i in range(0, len(order), 2))


def assignment_from_pairings(
    regions: Sequence[str],
    pairings: Sequence[SemifinalPairing],
) -> tuple[SlotTarget, ...]:
    """Build the convergence table from semifinal pairings.

    The returned tuple is indexed like the convergence round: entry *i* is the
    destination of the champion of ``regions[i]``.

    Raises:
        ValueError: If the pairings do not place every region exactly once.
    """
    placement: dict[str, SlotTarget] = {}
    for matchup_index, pairing in enumerate(pairings):
        for slot, region in enumerate((pairing.region1, pairing.region2)):
            if region in placement:
                msg = f"Region {region!r} appears in more than one semifinal"
                raise ValueError(msg)
            placement[region] = SlotTarget(matchup_index, slot)
    missing = [r for r in regions if r not in placement]
    unknown = sorted(set(placement) - set(regions))
    if missing or unknown:
        msg = f"Semifinal pairings must cover regions {list(regions)}; missing={missing}, unknown={unknown}"
        raise ValueError(msg)
    return tuple(placement[r] for r in regions)


def pairings_from_config(config: Mapping[str, Any] | None) -> tuple[SemifinalPairing, ...]:
    """Parse a ``{"semifinal1": {"region1": ..., "region2": ...}, ...}`` mapping.

    ``None`` or an empty mapping yields :data:`DEFAULT_FINAL_FOUR`.  Keys are
    read in ``semifinal1``, ``semifinal2``, ... order.
    """
    if not config:
        return DEFAULT_FINAL_FOUR
    pairings: list[SemifinalPairing] = []
    index = 1
    while f"semifinal{index}" in config:
        entry = config[f"semifinal{index}"]
        pairings.append(SemifinalPairing(str(entry["region1"]), str(entry["region2"])))
        index += 1
    if not pairings:
        logger.warning("Final Four config has no semifinal entries; using default pairing")
        return DEFAULT_FINAL_FOUR
    return tuple(pairings)


# ---------------------------------------------------------------------------
# BracketLayout
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BracketLayout:
    """Immutable bracket topology.

    Attributes:
        name: Registry name (also the name of the matching scoring preset).
        rounds: Round specs in play order; the last round has one matchup.
        regions: Region names in first-round order.  Empty for brackets
            without regions.
        convergence_round: Index of the round whose matchups decide the
            region champions, or ``None`` when winners always advance by
            ``floor(i / 2)``.
        convergence_targets: Destination in the following round of each
            convergence-round matchup (see :func:`assignment_from_pairings`).
        seed_pairings: First-round seed pairings within one region.
        secondary_label: Name of the secondary prediction (``"Finals MVP"``),
            or ``None`` when the layout has none.
    """

    name: str
    rounds: tuple[RoundSpec, ...]
    regions: tuple[str, ...] = ()
    convergence_round: int | None = None
    convergence_targets: tuple[SlotTarget, ...] = ()
    seed_pairings: tuple[tuple[int, int], ...] = ()
    secondary_label: str | None = None

    def __post_init__(self) -> None:
        if not self.rounds:
            msg = "A layout needs at least one round"
            raise ValueError(msg)
        if self.rounds[-1].size != 1:
            msg = f"Terminal round {self.rounds[-1].key!r} must have exactly one matchup"
            raise ValueError(msg)
        for prev, nxt in zip(self.rounds, self.rounds[1:]):
            if prev.size != 2 * nxt.size:
                msg = f"Round {nxt.key!r} must have half the matchups of {prev.key!r}"
                raise ValueError(msg)
        keys = [r.key for r in self.rounds]
        if len(set(keys)) != len(keys):
            msg = f"Duplicate round keys in layout {self.name!r}: {keys}"
            raise ValueError(msg)
        if self.regions and self.rounds[0].size % len(self.regions):
            msg = f"{len(self.regions)} regions do not divide {self.rounds[0].size} first-round matchups"
            raise ValueError(msg)
        if self.convergence_round is not None:
            self._check_convergence(self.convergence_round)

    def _check_convergence(self, idx: int) -> None:
        if not 0 <= idx < len(self.rounds) - 1:
            msg = f"convergence_round {idx} must precede the terminal round"
            raise ValueError(msg)
        if len(self.convergence_targets) != self.rounds[idx].size:
            msg = (
                f"convergence_targets has {len(self.convergence_targets)} entries; "
                f"round {self.rounds[idx].key!r} has {self.rounds[idx].size} matchups"
            )
            raise ValueError(msg)
        next_size = self.rounds[idx + 1].size
        expected = {(m, s) for m in range(next_size) for s in (0, 1)}
        actual = {(t.matchup_index, t.slot) for t in self.convergence_targets}
        if actual != expected or len(actual) != len(self.convergence_targets):
            msg = "convergence_targets must fill every slot of the following round exactly once"
            raise ValueError(msg)

    # -- lookups ----------------------------------------------------------

    @property
    def round_keys(self) -> tuple[str, ...]:
        """Round keys in play order."""
        return tuple(r.key for r in self.rounds)

    @property
    def terminal_index(self) -> int:
        return len(self.rounds) - 1

    @property
    def terminal_key(self) -> str:
        return self.rounds[-1].key

    @property
    def team_count(self) -> int:
        return 2 * self.rounds[0].size

    @property
    def total_games(self) -> int:
        """Number of matchups across all rounds (``team_count - 1``)."""
        return sum(r.size for r in self.rounds)

    @property
    def region_size(self) -> int:
        """Teams per region (the whole field when there are no regions)."""
        return self.team_count // max(len(self.regions), 1)

    @property
    def max_seed(self) -> int:
        return self.region_size

    def round_index(self, round_ref: str | int) -> int:
        """Resolve a round key or index to an index.

        Raises:
            ValueError: If the key is unknown or the index out of range.
        """
        if isinstance(round_ref, int):
            if not 0 <= round_ref < len(self.rounds):
                msg = f"Round index {round_ref} out of range for layout {self.name!r}"
                raise ValueError(msg)
            return round_ref
        for i, spec in enumerate(self.rounds):
            if spec.key == round_ref:
                return i
        msg = f"Unknown round {round_ref!r} for layout {self.name!r}. Rounds: {list(self.round_keys)}"
        raise ValueError(msg)

    def round_spec(self, round_ref: str | int) -> RoundSpec:
        return self.rounds[self.round_index(round_ref)]

    def destination(self, round_index: int, matchup_index: int) -> SlotTarget | None:
        """Where the winner of a matchup goes in round ``round_index + 1``.

        Returns ``None`` for the terminal round.
        """
        if round_index >= self.terminal_index:
            return None
        if round_index == self.convergence_round:
            return self.convergence_targets[matchup_index]
        return SlotTarget(matchup_index // 2, matchup_index % 2)

    def region_of(self, round_index: int, matchup_index: int) -> str | None:
        """Region a matchup belongs to, or ``None`` after the regions converge."""
        if not self.regions:
            return None
        last_regional = self.convergence_round if self.convergence_round is not None else -1
        per_region = self.rounds[round_index].size // len(self.regions)
        if round_index > last_regional or per_region == 0:
            return None
        return self.regions[matchup_index // per_region]


# ---------------------------------------------------------------------------
# Layout registry
# ---------------------------------------------------------------------------

_LAYOUT_REGISTRY: dict[str, BracketLayout] = {}


class LayoutNotFoundError(KeyError):
    """Raised when a requested layout name is not in the registry."""


def register_layout(layout: BracketLayout, *, replace: bool = False) -> BracketLayout:
    """Add *layout* to the registry under ``layout.name``.

    Raises:
        ValueError: If the name is taken and *replace* is ``False``.
    """
    if layout.name in _LAYOUT_REGISTRY and not replace:
        msg = f"Layout name {layout.name!r} is already registered"
        raise ValueError(msg)
    _LAYOUT_REGISTRY[layout.name] = layout
    return layout


def get_layout(name: str) -> BracketLayout:
    """Return the layout registered under *name*.

    Raises:
        LayoutNotFoundError: If *name* is not registered.
    """
    try:
        return _LAYOUT_REGISTRY[name]
    except KeyError:
        msg = f"No layout registered with name {name!r}. Available: {list_layouts()}"
        raise LayoutNotFoundError(msg) from None


def list_layouts() -> list[str]:
    """Return all registered layout names (sorted)."""
    return sorted(_LAYOUT_REGISTRY)


# ---------------------------------------------------------------------------
# Layout factories
# ---------------------------------------------------------------------------


def build_layout(
    team_count: int,
    *,
    name: str = "custom",
    round_keys: Sequence[str] | None = None,
    round_labels: Sequence[str] | None = None,
    series: bool = False,
) -> BracketLayout:
    """Build a region-less layout for a power-of-two field.

    Round keys default to ``Round1 .. RoundN``.  First-round pairings follow
    :func:`standard_seed_pairings` over the whole field.

    Example:
        >>> layout = build_layout(4, round_keys=["Semifinals", "Final"])
        >>> [r.size for r in layout.rounds]
        [2, 1]
    """
    pairings = standard_seed_pairings(team_count)
    n_rounds = team_count.bit_length() - 1
    keys = list(round_keys) if round_keys is not None else [f"Round{i + 1}" for i in range(n_rounds)]
    labels = list(round_labels) if round_labels is not None else keys
    if len(keys) != n_rounds or len(labels) != n_rounds:
        msg = f"A {team_count}-team bracket has {n_rounds} rounds; got {len(keys)} keys, {len(labels)} labels"
        raise ValueError(msg)
    rounds = tuple(
        RoundSpec(key, label, team_count >> (i + 1), is_series=series)
        for i, (key, label) in enumerate(zip(keys, labels))
    )
    return BracketLayout(name=name, rounds=rounds, seed_pairings=pairings)


def march_madness_layout(
    pairings: Sequence[SemifinalPairing] = DEFAULT_FINAL_FOUR,
    *,
    name: str = "marchMadness",
) -> BracketLayout:
    """Return the 64-team NCAA layout with the given semifinal pairing."""
    regions = ("East", "West", "Midwest", "South")
    return BracketLayout(
        name=name,
        rounds=(
            RoundSpec("RoundOf64", "Round of 64", 32),
            RoundSpec("RoundOf32", "Round of 32", 16),
            RoundSpec("Sweet16", "Sweet 16", 8),
            RoundSpec("Elite8", "Elite 8", 4),
            RoundSpec("FinalFour", "Final Four", 2),
            RoundSpec("Championship", "Championship", 1),
        ),
        regions=regions,
        convergence_round=3,
        convergence_targets=assignment_from_pairings(regions, pairings),
        seed_pairings=NCAA_SEED_PAIRINGS,
    )


def nba_playoffs_layout() -> BracketLayout:
    """Return the 16-team NBA playoff layout (best-of-seven rounds)."""
    return BracketLayout(
        name="nbaPlayoffs",
        rounds=(
            RoundSpec("First Round", "First Round", 8, is_series=True),
            RoundSpec("Conference Semifinals", "Conference Semifinals", 4, is_series=True),
            RoundSpec("Conference Finals", "Conference Finals", 2, is_series=True),
            RoundSpec("NBA Finals", "NBA Finals", 1, is_series=True),
        ),
        regions=("East", "West"),
        convergence_round=2,
        convergence_targets=(SlotTarget(0, 0), SlotTarget(0, 1)),
        seed_pairings=NBA_SEED_PAIRINGS,
        secondary_label="Finals MVP",
    )


register_layout(march_madness_layout())
register_layout(nba_playoffs_layout())
