"""Scoring configuration: Pydantic model, named presets and settings parsing.

A league's scoring rules are stored as a loosely structured settings
document.  :meth:`ScoringConfig.from_settings` turns that document into a
validated :class:`ScoringConfig`, starting from the preset registered for
the layout and overlaying whatever the league customised.  Both the
canonical camelCase shape (``roundPoints``, ``bonusMode``, ...) and the flat
legacy keys (``roundOf64``, ``bonusType``, ``upsetBonus``,
``seriesLengthFirstRound``, ``"Finals MVP"``, ...) are understood.

A missing settings document is not an error: the preset is used and a
warning is logged so the fallback is visible.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bracket_pool.bracket.layout import BracketLayout

logger = logging.getLogger(__name__)


class BonusMode(str, enum.Enum):
    """How the upset bonus is sized."""

    SEED_DIFFERENCE = "seedDifference"
    FLAT = "flat"


class ScoringConfig(BaseModel):
    """Validated scoring rules for one league.

    Attributes:
        round_points: Points for a correct pick, keyed by round key.
        bonus_enabled: Whether correct upset picks earn a bonus.
        bonus_mode: ``seedDifference`` (bonus scales with the seed gap) or
            ``flat``.
        bonus_per_seed_difference: Bonus per seed of difference.
        flat_bonus_value: Bonus per upset in ``flat`` mode.
        exact_length_bonus_enabled: Whether an exactly predicted series
            length earns ``series_length_bonus[round]``.
        series_length_bonus: Series-length bonus keyed by round key.
        champion_bonus: Extra points for a correct terminal pick.
        secondary_pick_points: Points for the secondary prediction.
        case_sensitive_picks: Compare team names case-sensitively (names are
            always trimmed).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    round_points: dict[str, float] = Field(default_factory=dict, alias="roundPoints")
    bonus_enabled: bool = Field(default=False, alias="bonusEnabled")
    bonus_mode: BonusMode = Field(default=BonusMode.SEED_DIFFERENCE, alias="bonusMode")
    bonus_per_seed_difference: float = Field(default=0.5, ge=0.0, alias="bonusPerSeedDifference")
    flat_bonus_value: float = Field(default=0.5, ge=0.0, alias="flatBonusValue")
    exact_length_bonus_enabled: bool = Field(default=False, alias="exactLengthBonusEnabled")
    series_length_bonus: dict[str, float] = Field(default_factory=dict, alias="seriesLengthBonus")
    champion_bonus: float = Field(default=0.0, ge=0.0, alias="championBonus")
    secondary_pick_points: float = Field(default=0.0, ge=0.0, alias="secondaryPickPoints")
    case_sensitive_picks: bool = Field(default=True, alias="caseSensitivePicks")

    @field_validator("round_points", "series_length_bonus")
    @classmethod
    def _non_negative(cls, value: dict[str, float]) -> dict[str, float]:
        negative = {k: v for k, v in value.items() if v < 0}
        if negative:
            msg = f"point values must be non-negative, got {negative}"
            raise ValueError(msg)
        return value

    def point_value(self, round_key: str) -> float:
        """Points for a correct pick in *round_key* (0 when unconfigured)."""
        return self.round_points.get(round_key, 0.0)

    def series_bonus(self, round_key: str) -> float:
        if not self.exact_length_bonus_enabled:
            return 0.0
        return self.series_length_bonus.get(round_key, 0.0)

    def upset_bonus(self, winner_seed: int | None, seed1: int | None, seed2: int | None) -> float:
        """Bonus for a correctly picked winner of a game with these seeds.

        The favourite is the lower seed number; there is an upset when the
        winner's seed is greater.  Missing seeds never earn a bonus.
        """
        if not self.bonus_enabled or not winner_seed or not seed1 or not seed2:
            return 0.0
        expected = min(seed1, seed2)
        if winner_seed <= expected:
            return 0.0
        if self.bonus_mode is BonusMode.SEED_DIFFERENCE:
            return (winner_seed - expected) * self.bonus_per_seed_difference
        return self.flat_bonus_value

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any] | None, layout: BracketLayout) -> ScoringConfig:
        """Build the config for *layout* from a stored settings document.

        Args:
            settings: League scoring settings, or ``None`` when the league
                has none stored.
            layout: Layout the league uses; selects the base preset.

        Returns:
            The preset for *layout* overlaid with *settings*.

        Raises:
            pydantic.ValidationError: If the merged settings are invalid
                (for example a negative point value).
        """
        base = default_config(layout)
        if settings is None:
            logger.warning("No scoring settings for layout %r; using built-in defaults", layout.name)
            return base
        merged = base.to_document()
        overrides = _normalise_settings(settings, layout)
        for key in ("roundPoints", "seriesLengthBonus"):
            if key in overrides:
                merged[key] = {**merged[key], **overrides.pop(key)}
        merged.update(overrides)
        return cls.model_validate(merged)


# ---------------------------------------------------------------------------
# Legacy settings translation
# ---------------------------------------------------------------------------

_LEGACY_ROUND_KEYS: dict[str, str] = {
    "roundOf64": "RoundOf64",
    "roundOf32": "RoundOf32",
    "sweet16": "Sweet16",
    "elite8": "Elite8",
    "finalFour": "FinalFour",
    "championship": "Championship",
}

_LEGACY_SERIES_KEYS: dict[str, str] = {
    "seriesLengthFirstRound": "First Round",
    "seriesLengthConfSemis": "Conference Semifinals",
    "seriesLengthConfFinals": "Conference Finals",
    "seriesLengthNBAFinals": "NBA Finals",
}

_CANONICAL_KEYS = frozenset(
    field.alias for field in ScoringConfig.model_fields.values() if field.alias is not None
)


def _normalise_settings(settings: Mapping[str, Any], layout: BracketLayout) -> dict[str, Any]:
    """Translate a settings document into canonical camelCase overrides."""
    out: dict[str, Any] = {k: v for k, v in settings.items() if k in _CANONICAL_KEYS}
    round_points: dict[str, float] = dict(out.pop("roundPoints", {}) or {})
    series: dict[str, float] = dict(out.pop("seriesLengthBonus", {}) or {})

    for legacy, round_key in _LEGACY_ROUND_KEYS.items():
        if legacy in settings and round_key in layout.round_keys:
            round_points[round_key] = settings[legacy]
    for round_key in layout.round_keys:
        if round_key in settings and isinstance(settings[round_key], (int, float)):
            round_points[round_key] = settings[round_key]
    for legacy, round_key in _LEGACY_SERIES_KEYS.items():
        if legacy in settings:
            series[round_key] = settings[legacy]

    if "bonusType" in settings:
        out.setdefault("bonusMode", settings["bonusType"])
    if "upsetBonusEnabled" in settings:
        out.setdefault("bonusEnabled", settings["upsetBonusEnabled"])
        out.setdefault("bonusMode", BonusMode.FLAT.value)
    if "upsetBonus" in settings:
        out.setdefault("flatBonusValue", settings["upsetBonus"])
    if "seriesLengthBonusEnabled" in settings:
        out.setdefault("exactLengthBonusEnabled", settings["seriesLengthBonusEnabled"])
    if layout.secondary_label is not None and layout.secondary_label in settings:
        out.setdefault("secondaryPickPoints", settings[layout.secondary_label])
    if "Champion" in settings:
        out.setdefault("championBonus", settings["Champion"])

    if round_points:
        out["roundPoints"] = round_points
    if series:
        out["seriesLengthBonus"] = series
    known = _CANONICAL_KEYS | set(_LEGACY_ROUND_KEYS) | set(_LEGACY_SERIES_KEYS) | set(layout.round_keys)
    known |= {"bonusType", "upsetBonusEnabled", "upsetBonus", "seriesLengthBonusEnabled", "Champion"}
    if layout.secondary_label is not None:
        known.add(layout.secondary_label)
    unknown = sorted(set(settings) - known)
    if unknown:
        logger.debug("Ignoring unrecognised scoring settings: %s", unknown)
    return out


# ---------------------------------------------------------------------------
# Preset registry
# ---------------------------------------------------------------------------

_PresetFactory = Callable[[BracketLayout], ScoringConfig]

_PRESET_REGISTRY: dict[str, _PresetFactory] = {}


class PresetNotFoundError(KeyError):
    """Raised when a requested scoring preset is not in the registry."""


def register_preset(name: str) -> Callable[[_PresetFactory], _PresetFactory]:
    """Decorator that registers a preset factory under *name*.

    Raises:
        ValueError: If *name* is already registered.
    """

    def decorator(factory: _PresetFactory) -> _PresetFactory:
        if name in _PRESET_REGISTRY:
            msg = f"Scoring preset {name!r} is already registered"
            raise ValueError(msg)
        _PRESET_REGISTRY[name] = factory
        return factory

    return decorator


def get_preset(name: str, layout: BracketLayout) -> ScoringConfig:
    """Instantiate the preset *name* for *layout*.

    Raises:
        PresetNotFoundError: If *name* is not registered.
    """
    try:
        factory = _PRESET_REGISTRY[name]
    except KeyError:
        msg = f"No scoring preset registered with name {name!r}. Available: {list_presets()}"
        raise PresetNotFoundError(msg) from None
    return factory(layout)


def list_presets() -> list[str]:
    """Return all registered preset names (sorted)."""
    return sorted(_PRESET_REGISTRY)


def default_config(layout: BracketLayout) -> ScoringConfig:
    """The preset named after *layout*, or ``standard`` when there is none."""
    name = layout.name if layout.name in _PRESET_REGISTRY else "standard"
    return get_preset(name, layout)


@register_preset("standard")
def _standard(layout: BracketLayout) -> ScoringConfig:
    """Doubling points per round: 1, 2, 4, 8, ..."""
    return ScoringConfig(round_points={key: float(2**i) for i, key in enumerate(layout.round_keys)})


@register_preset("fibonacci")
def _fibonacci(layout: BracketLayout) -> ScoringConfig:
    """Fibonacci points per round: 2, 3, 5, 8, 13, 21, ..."""
    points: list[float] = []
    a, b = 2.0, 3.0
    for _ in layout.round_keys:
        points.append(a)
        a, b = b, a + b
    return ScoringConfig(round_points=dict(zip(layout.round_keys, points)))


@register_preset("marchMadness")
def _march_madness(layout: BracketLayout) -> ScoringConfig:
    """1-2-4-8-16-32 with the upset bonus off (0.5 per seed when enabled)."""
    return _standard(layout)


@register_preset("nbaPlayoffs")
def _nba_playoffs(layout: BracketLayout) -> ScoringConfig:
    """1-2-3-4 per round, flat 2-point upset bonus, series-length bonus, 2.5 for Finals MVP."""
    series_values = (0.5, 1.0, 1.5, 2.0)
    return ScoringConfig(
        round_points={key: float(i + 1) for i, key in enumerate(layout.round_keys)},
        bonus_enabled=True,
        bonus_mode=BonusMode.FLAT,
        flat_bonus_value=2.0,
        exact_length_bonus_enabled=True,
        series_length_bonus={
            key: series_values[min(i, len(series_values) - 1)] for i, key in enumerate(layout.round_keys)
        },
        secondary_pick_points=2.5,
    )
