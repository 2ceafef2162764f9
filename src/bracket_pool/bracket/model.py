"""Pydantic v2 models for bracket documents, plus validation and repair.

A :class:`Bracket` stores every round as a tuple of :class:`Matchup` values
keyed by round key, the terminal round included.  On the wire the terminal
round is written as a single object, which is the shape stored documents
have always used; both shapes are accepted on input, as are legacy
documents that keep the rounds as top-level keys next to ``Champion`` /
``ChampionSeed``.

``validate`` reports structural problems without changing anything;
``repair`` always returns a well-formed bracket for the given layout and is
idempotent.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from bracket_pool.bracket.layout import BracketLayout
from bracket_pool.errors import MalformedBracketError

logger = logging.getLogger(__name__)

_LEGACY_CHAMPION_KEY = "Champion"
_LEGACY_CHAMPION_SEED_KEY = "ChampionSeed"


def _coerce_team(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def _coerce_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text.startswith("-") else text
        return int(text) if digits.isdecimal() else None
    return None


class Matchup(BaseModel):
    """A single game (or series) between two slots.

    ``winner`` is ``""`` until the game is decided.  Seeds are ``None`` when
    unknown.  ``num_games`` is the series length for best-of-N rounds.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    team1: str = Field(default="", alias="team1", validation_alias=AliasChoices("team1", "slot1Team"))
    team1_seed: int | None = Field(
        default=None, alias="team1Seed", validation_alias=AliasChoices("team1Seed", "slot1Seed")
    )
    team2: str = Field(default="", alias="team2", validation_alias=AliasChoices("team2", "slot2Team"))
    team2_seed: int | None = Field(
        default=None, alias="team2Seed", validation_alias=AliasChoices("team2Seed", "slot2Seed")
    )
    winner: str = Field(default="", alias="winner")
    winner_seed: int | None = Field(default=None, alias="winnerSeed")
    num_games: int | None = Field(
        default=None, alias="numGames", validation_alias=AliasChoices("numGames", "gamesPlayed")
    )

    @field_validator("team1", "team2", "winner", mode="before")
    @classmethod
    def _teams_default_to_empty(cls, value: Any) -> str:
        return _coerce_team(value)

    @field_validator("team1_seed", "team2_seed", "winner_seed", "num_games", mode="before")
    @classmethod
    def _ints_default_to_none(cls, value: Any) -> int | None:
        return _coerce_int(value)

    @property
    def is_decided(self) -> bool:
        """``True`` once a (non-blank) winner is recorded."""
        return bool(self.winner.strip())

    @property
    def participants(self) -> frozenset[str]:
        """The two (trimmed, non-empty) team names in either slot."""
        return frozenset(t.strip() for t in (self.team1, self.team2) if t.strip())

    def slot_team(self, slot: int) -> tuple[str, int | None]:
        """Return ``(team, seed)`` for slot 0 (team1) or 1 (team2)."""
        return (self.team1, self.team1_seed) if slot == 0 else (self.team2, self.team2_seed)

    def with_slot(self, slot: int, team: str, seed: int | None) -> Matchup:
        """Return a copy with slot 0 or 1 replaced."""
        if slot == 0:
            return self.model_copy(update={"team1": team, "team1_seed": seed})
        return self.model_copy(update={"team2": team, "team2_seed": seed})

    def with_winner(self, winner: str, winner_seed: int | None) -> Matchup:
        return self.model_copy(update={"winner": winner, "winner_seed": winner_seed})

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Bracket(BaseModel):
    """A full bracket: official results or one user's predictions.

    ``champion_pick`` / ``champion_seed`` mirror the terminal winner and are
    maintained by the propagation engine; they are never read as the source
    of truth.  ``secondary_pick`` holds the secondary prediction (Finals MVP)
    for layouts that define one.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    rounds: dict[str, tuple[Matchup, ...]] = Field(default_factory=dict)
    champion_pick: str = Field(default="", alias="championPick")
    champion_seed: int | None = Field(default=None, alias="championSeed")
    secondary_pick: str = Field(default="", alias="secondaryPick")

    def round(self, key: str) -> tuple[Matchup, ...]:
        """Matchups of round *key* (empty when the round is absent)."""
        return self.rounds.get(key, ())

    def matchup(self, key: str, index: int) -> Matchup | None:
        matchups = self.round(key)
        return matchups[index] if 0 <= index < len(matchups) else None

    def terminal(self, layout: BracketLayout) -> Matchup | None:
        """The single matchup of the layout's terminal round, if present."""
        return self.matchup(layout.terminal_key, 0)

    def with_round(self, key: str, matchups: tuple[Matchup, ...]) -> Bracket:
        return self.model_copy(update={"rounds": {**self.rounds, key: matchups}})

    # -- document conversion ---------------------------------------------

    @classmethod
    def from_document(cls, document: Any, layout: BracketLayout) -> Bracket:
        """Parse a stored bracket document without repairing it.

        Rounds absent from the document stay absent; sizes are not checked.

        Raises:
            MalformedBracketError: If *document* is not a mapping or a round
                contains something other than matchup objects.
        """
        if not isinstance(document, Mapping):
            msg = f"Bracket document must be a mapping, got {type(document).__name__}"
            raise MalformedBracketError(msg)
        source = _round_source(document)
        rounds: dict[str, tuple[Matchup, ...]] = {}
        for spec in layout.rounds:
            raw = source.get(spec.key)
            if raw is None:
                continue
            entries = [raw] if isinstance(raw, Mapping) else raw
            if not isinstance(entries, (list, tuple)):
                msg = f"Round {spec.key!r} must be a list of matchups, got {type(raw).__name__}"
                raise MalformedBracketError(msg)
            parsed: list[Matchup] = []
            for i, entry in enumerate(entries):
                if entry is None:
                    parsed.append(Matchup())
                    continue
                if not isinstance(entry, Mapping):
                    msg = f"{spec.key}[{i}] is not a matchup object"
                    raise MalformedBracketError(msg)
                try:
                    parsed.append(Matchup.model_validate(dict(entry)))
                except ValidationError as exc:
                    msg = f"{spec.key}[{i}] could not be parsed: {exc}"
                    raise MalformedBracketError(msg) from exc
            rounds[spec.key] = tuple(parsed)
        return cls(
            rounds=rounds,
            champion_pick=_coerce_team(document.get("championPick", document.get(_LEGACY_CHAMPION_KEY))),
            champion_seed=_coerce_int(document.get("championSeed", document.get(_LEGACY_CHAMPION_SEED_KEY))),
            secondary_pick=_secondary_from(document, layout),
        )

    def to_document(self, layout: BracketLayout) -> dict[str, Any]:
        """Serialize to the stored document shape (terminal round as an object)."""
        rounds: dict[str, Any] = {}
        for spec in layout.rounds:
            if spec.key not in self.rounds:
                continue
            matchups = [m.to_document() for m in self.rounds[spec.key]]
            if spec.key == layout.terminal_key and len(matchups) == 1:
                rounds[spec.key] = matchups[0]
            else:
                rounds[spec.key] = matchups
        document: dict[str, Any] = {
            "rounds": rounds,
            "championPick": self.champion_pick,
            "championSeed": self.champion_seed,
        }
        if layout.secondary_label is not None:
            document["secondaryPick"] = self.secondary_pick
        return document


def _round_source(document: Mapping[str, Any]) -> Mapping[str, Any]:
    nested = document.get("rounds")
    return nested if isinstance(nested, Mapping) else document


def _secondary_from(document: Mapping[str, Any], layout: BracketLayout) -> str:
    if "secondaryPick" in document:
        return _coerce_team(document["secondaryPick"])
    if layout.secondary_label is not None:
        return _coerce_team(document.get(layout.secondary_label))
    return ""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of :func:`validate`: ``ok`` is ``True`` when ``errors`` is empty."""

    errors: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


def validate(source: Bracket | Any, layout: BracketLayout) -> ValidationReport:
    """Check a bracket (or raw document) against *layout* without modifying it.

    Reported problems: a document that is not a mapping, missing rounds,
    rounds that are not lists (or, for the terminal round, not a single
    matchup object), wrong matchup counts, non-object matchup entries and a
    missing champion field.
    """
    document = source.to_document(layout) if isinstance(source, Bracket) else source
    if not isinstance(document, Mapping):
        return ValidationReport(("Bracket data is not a mapping",))

    errors: list[str] = []
    rounds = _round_source(document)
    for spec in layout.rounds:
        raw = rounds.get(spec.key)
        if raw is None:
            errors.append(f"Missing {spec.key} round data")
            continue
        if spec.key == layout.terminal_key:
            if isinstance(raw, Mapping):
                continue
            if isinstance(raw, (list, tuple)) and len(raw) == 1 and isinstance(raw[0], Mapping):
                continue
            errors.append(f"{spec.key} should be a single matchup object")
            continue
        if not isinstance(raw, (list, tuple)):
            errors.append(f"{spec.key} should be a list of matchups")
            continue
        if len(raw) != spec.size:
            errors.append(f"{spec.key} should have {spec.size} matchups")
        errors.extend(
            f"{spec.key}[{i}] is not a matchup object"
            for i, entry in enumerate(raw)
            if not isinstance(entry, Mapping)
        )
    if "championPick" not in document and _LEGACY_CHAMPION_KEY not in document:
        errors.append("Missing Champion field")
    return ValidationReport(tuple(errors))


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------


def _rebuild_matchup(entry: Any) -> Matchup:
    if isinstance(entry, Matchup):
        return entry
    if not isinstance(entry, Mapping):
        return Matchup()
    try:
        return Matchup.model_validate(dict(entry))
    except ValidationError:
        logger.debug("Discarding unparseable matchup %r", entry)
        return Matchup()


def repair(source: Bracket | Any, layout: BracketLayout) -> Bracket:
    """Return a structurally complete bracket for *layout*.

    Never raises.  Missing rounds become empty matchups of the right count,
    short rounds are padded and long rounds truncated, every matchup is
    rebuilt field by field with blank defaults, the terminal round becomes a
    single matchup and the champion mirror is re-derived from the terminal
    winner.  ``repair(repair(b)) == repair(b)``.
    """
    if isinstance(source, Bracket):
        rounds_src: Mapping[str, Any] = source.rounds
        secondary = source.secondary_pick
    elif isinstance(source, Mapping):
        rounds_src = _round_source(source)
        secondary = _secondary_from(source, layout)
    else:
        rounds_src = {}
        secondary = ""

    rounds: dict[str, tuple[Matchup, ...]] = {}
    for spec in layout.rounds:
        raw = rounds_src.get(spec.key)
        if isinstance(raw, (Mapping, Matchup)):
            entries: list[Any] = [raw]
        elif isinstance(raw, (list, tuple)):
            entries = list(raw)[: spec.size]
        else:
            entries = []
        matchups = [_rebuild_matchup(e) for e in entries]
        matchups.extend(Matchup() for _ in range(spec.size - len(matchups)))
        rounds[spec.key] = tuple(matchups)

    final = rounds[layout.terminal_key][0]
    return Bracket(
        rounds=rounds,
        champion_pick=final.winner if final.is_decided else "",
        champion_seed=final.winner_seed if final.is_decided else None,
        secondary_pick=secondary if layout.secondary_label is not None else "",
    )


def empty_bracket(layout: BracketLayout) -> Bracket:
    """A bracket with every matchup blank."""
    return repair({}, layout)


def load_bracket(document: Any, layout: BracketLayout, *, label: str = "bracket") -> Bracket:
    """Validate, then repair, a stored document, logging what was fixed.

    Raises:
        MalformedBracketError: If *document* is not a mapping at all.
    """
    if not isinstance(document, Mapping):
        msg = f"{label}: document must be a mapping, got {type(document).__name__}"
        raise MalformedBracketError(msg)
    report = validate(document, layout)
    if not report.ok:
        logger.warning("%s failed validation, repairing: %s", label, "; ".join(report.errors))
    return repair(document, layout)


def same_team(a: str, b: str, *, case_sensitive: bool = True) -> bool:
    """Compare two team names after trimming; blank names never match."""
    left, right = a.strip(), b.strip()
    if not left or not right:
        return False
    if case_sensitive:
        return left == right
    return left.casefold() == right.casefold()
