"""Shared pytest fixtures for the bracket_pool test suite.

Most tests use a 4-team bracket (two semifinals and a final) with teams
A (seed 1), B (seed 4), C (seed 2) and D (seed 3):

    Semifinals[0]: A (1) v B (4)
    Semifinals[1]: C (2) v D (3)
    Final:         winners of the two semifinals
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest

from bracket_pool.bracket import Bracket, BracketLayout, Matchup, build_layout, register_layout, repair
from bracket_pool.scoring import ScoringConfig
from bracket_pool.store import InMemoryDocumentStore, JsonDocumentStore, StorePaths

#: ``(team1, seed1, team2, seed2, winner)``; ``winner`` may be ``""``.
GameSpec = tuple[str, int | None, str, int | None, str]
BracketFactory = Callable[[Sequence[GameSpec], GameSpec], Bracket]

SEEDS: dict[str, int] = {"A": 1, "B": 4, "C": 2, "D": 3}
LEAGUE_ID = "league-1"


@pytest.fixture(autouse=True)
def _reset_bracket_pool_logger() -> Iterator[None]:
    """Undo any `configure_logging` call (CLI tests make one) after every test."""
    yield
    root = logging.getLogger("bracket_pool")
    root.handlers.clear()
    root.setLevel(logging.NOTSET)
    root.propagate = True


def _matchup(spec: GameSpec) -> Matchup:
    team1, seed1, team2, seed2, winner = spec
    winner_seed = seed1 if winner and winner == team1 else seed2 if winner and winner == team2 else None
    return Matchup(
        team1=team1, team1_seed=seed1, team2=team2, team2_seed=seed2, winner=winner, winner_seed=winner_seed
    )


@pytest.fixture
def four_team_layout() -> BracketLayout:
    """A registered 4-team layout with rounds ``Semifinals`` and ``Final``."""
    layout = build_layout(4, name="fourTeam", round_keys=["Semifinals", "Final"])
    return register_layout(layout, replace=True)


@pytest.fixture
def four_team_config() -> ScoringConfig:
    """1 point per semifinal, 2 for the final, no bonuses."""
    return ScoringConfig(round_points={"Semifinals": 1.0, "Final": 2.0})


@pytest.fixture
def make_bracket(four_team_layout: BracketLayout) -> BracketFactory:
    """Build a repaired 4-team bracket from game tuples."""

    def factory(semis: Sequence[GameSpec], final: GameSpec) -> Bracket:
        raw = Bracket(rounds={"Semifinals": tuple(_matchup(s) for s in semis), "Final": (_matchup(final),)})
        return repair(raw, four_team_layout)

    return factory


@pytest.fixture
def official_bracket(make_bracket: BracketFactory) -> Bracket:
    """A beats B, C beats D, A beats C."""
    return make_bracket(
        [("A", 1, "B", 4, "A"), ("C", 2, "D", 3, "C")],
        ("A", 1, "C", 2, "A"),
    )


@pytest.fixture
def user_bracket(make_bracket: BracketFactory) -> Bracket:
    """A beats B, D beats C, A beats D: one semifinal and the final correct."""
    return make_bracket(
        [("A", 1, "B", 4, "A"), ("C", 2, "D", 3, "D")],
        ("A", 1, "D", 3, "A"),
    )


@pytest.fixture
def in_progress_official(make_bracket: BracketFactory) -> Bracket:
    """Semifinals decided, final still open."""
    return make_bracket(
        [("A", 1, "B", 4, "A"), ("C", 2, "D", 3, "C")],
        ("A", 1, "C", 2, ""),
    )


def league_documents(
    layout: BracketLayout,
    official: Bracket,
    brackets: dict[str, Bracket],
    *,
    league_id: str = LEAGUE_ID,
    settings: dict[str, Any] | None = None,
    paths: StorePaths | None = None,
) -> dict[str, dict[str, Any]]:
    """Store documents for one league: metadata, official bracket, user brackets, settings."""
    p = paths or StorePaths()
    documents: dict[str, dict[str, Any]] = {
        p.league_doc(league_id): {"gameTypeId": layout.name, "seasonId": "2025-2026"},
        p.official(league_id): official.to_document(layout),
    }
    for user_id, bracket in brackets.items():
        documents[p.user_bracket(league_id, user_id)] = {
            **bracket.to_document(layout),
            "userName": f"User {user_id}",
        }
    if settings is not None:
        documents[p.settings(league_id)] = settings
    return documents


@pytest.fixture
def league_store(
    four_team_layout: BracketLayout,
    official_bracket: Bracket,
    user_bracket: Bracket,
    make_bracket: BracketFactory,
) -> InMemoryDocumentStore:
    """In-memory store with one finished 4-team league and three players.

    ``perfect`` matches the official bracket, ``partial`` is
    :func:`user_bracket` and ``blank`` has no picks.
    """
    blank = make_bracket([("A", 1, "B", 4, ""), ("C", 2, "D", 3, "")], ("", None, "", None, ""))
    documents = league_documents(
        four_team_layout,
        official_bracket,
        {"perfect": official_bracket, "partial": user_bracket, "blank": blank},
        settings={"roundPoints": {"Semifinals": 1, "Final": 2}},
    )
    return InMemoryDocumentStore(documents)


@pytest.fixture
def json_store(tmp_path: Path, league_store: InMemoryDocumentStore) -> JsonDocumentStore:
    """The :func:`league_store` documents written to a temporary directory."""
    store = JsonDocumentStore(tmp_path / "store")
    for path, document in league_store.snapshot().items():
        store.set(path, document)
    return store


@pytest.fixture
def build_league_documents() -> Callable[..., dict[str, dict[str, Any]]]:
    """Expose :func:`league_documents` to tests that need a custom league."""
    return league_documents
