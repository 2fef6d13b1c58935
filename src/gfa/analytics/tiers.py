from __future__ import annotations

import logging
from typing import Any, Mapping

from gfa.contracts import AnalyticsTier, EnabledFeatures, TierConfig

logger = logging.getLogger(__name__)

_TRUTHY = {True, 1, "1", "true", "yes", "on"}

_FLAG_FIELDS = {
    "drive_analytics": "enable_drive_analytics",
    "player_attribution": "enable_player_attribution",
    "ol_tracking": "enable_ol_tracking",
    "defensive_tracking": "enable_defensive_tracking",
    "situational_splits": "enable_situational_splits",
}


def default_tier_presets() -> dict[AnalyticsTier, EnabledFeatures]:
    return {
        AnalyticsTier.LITTLE_LEAGUE: EnabledFeatures(),
        AnalyticsTier.HS_BASIC: EnabledFeatures(
            drive_analytics=True,
            player_attribution=True,
        ),
        AnalyticsTier.HS_ADVANCED: EnabledFeatures(
            drive_analytics=True,
            player_attribution=True,
            ol_tracking=True,
            defensive_tracking=True,
            situational_splits=True,
        ),
        AnalyticsTier.AI_POWERED: EnabledFeatures(
            drive_analytics=True,
            player_attribution=True,
            ol_tracking=True,
            defensive_tracking=True,
            situational_splits=True,
        ),
    }


def tier_config_for(team_id: str, tier: AnalyticsTier | str) -> TierConfig:
    """Build the stock configuration for a tier; unknown tiers get the most restrictive one."""
    try:
        resolved_tier = AnalyticsTier(tier)
    except ValueError:
        logger.warning("unknown analytics tier %r for team %s; using %s", tier, team_id, AnalyticsTier.LITTLE_LEAGUE.value)
        resolved_tier = AnalyticsTier.LITTLE_LEAGUE
    preset = default_tier_presets()[resolved_tier]
    return TierConfig(
        team_id=team_id,
        tier=resolved_tier,
        enable_drive_analytics=preset.drive_analytics,
        enable_player_attribution=preset.player_attribution,
        enable_ol_tracking=preset.ol_tracking,
        enable_defensive_tracking=preset.defensive_tracking,
        enable_situational_splits=preset.situational_splits,
    )


def resolve(team_config: TierConfig | Mapping[str, Any] | None) -> EnabledFeatures:
    """Map a team configuration to the analytics families the engine may compute.

    Flags are read as stored: the tier name never switches a family on by itself,
    and anything missing or unrecognized stays disabled.
    """
    if team_config is None:
        return EnabledFeatures()
    if isinstance(team_config, TierConfig):
        raw: Mapping[str, Any] = {name: getattr(team_config, name) for name in _FLAG_FIELDS.values()}
    elif isinstance(team_config, Mapping):
        raw = team_config
    else:
        logger.warning("unsupported tier config type %s; treating as most restrictive", type(team_config).__name__)
        return EnabledFeatures()

    flags = {feature: _flag(raw.get(column)) for feature, column in _FLAG_FIELDS.items()}
    return EnabledFeatures(**flags)


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    try:
        return value in _TRUTHY
    except TypeError:
        return False
