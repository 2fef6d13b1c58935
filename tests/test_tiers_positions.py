from __future__ import annotations

from gfa.analytics import buckets_for, members, resolve, tier_config_for
from gfa.analytics.positions import best_depth, bucket_sort_key, in_bucket
from gfa.analytics.tiers import default_tier_presets
from gfa.contracts import AnalyticsTier, EnabledFeatures, Feature, PositionBucket
from tests.helpers import player


def test_missing_config_resolves_to_most_restrictive_tier():
    features = resolve(None)
    assert features == EnabledFeatures()
    assert features.basic
    assert not any(features.enabled(f) for f in Feature if f != Feature.BASIC)


def test_tier_presets():
    basic = resolve(tier_config_for("T1", AnalyticsTier.HS_BASIC))
    assert basic.drive_analytics and basic.player_attribution
    assert not basic.ol_tracking and not basic.defensive_tracking and not basic.situational_splits

    advanced = resolve(tier_config_for("T1", "hs_advanced"))
    assert all(advanced.enabled(f) for f in Feature)

    assert resolve(tier_config_for("T1", "little_league")) == EnabledFeatures()


def test_unknown_tier_falls_back_to_little_league():
    config = tier_config_for("T1", "varsity_plus")
    assert config.tier == AnalyticsTier.LITTLE_LEAGUE


def test_raw_rows_only_enable_explicit_truthy_flags():
    features = resolve(
        {
            "tier": "ai_powered",
            "enable_ol_tracking": "YES",
            "enable_drive_analytics": "no",
            "enable_defensive_tracking": 2,
            "enable_player_attribution": 1,
        }
    )
    assert features.ol_tracking
    assert features.player_attribution
    assert not features.drive_analytics
    assert not features.defensive_tracking
    assert not features.situational_splits


def test_unsupported_config_type_never_raises():
    assert resolve("hs_advanced") == EnabledFeatures()


def test_bucket_membership_spans_every_held_position():
    two_way = player("P1", "Two Way", "12", {"QB": 2, "s": 1}, primary="S")
    assert buckets_for(two_way) == frozenset({PositionBucket.QB, PositionBucket.DB})
    assert buckets_for(player("P2", "Nobody", "0", {})) == frozenset()
    assert buckets_for(player("P3", "Slot", "80", {"slot": 3})) == frozenset({PositionBucket.WR_TE})


def test_bucket_ordering_uses_depth_then_primary_then_jersey():
    starter = player("A", "Starter", "12", {"QB": 1, "S": 2}, primary="S")
    backup = player("B", "Backup", "7", {"QB": 2}, primary="QB")
    primary_tie = player("C", "Also Starter", "15", {"QB": 1}, primary="QB")
    ordered = members([backup, starter, primary_tie], PositionBucket.QB)
    assert [p.player_id for p in ordered] == ["C", "A", "B"]
    assert best_depth(starter, PositionBucket.DB) == 2
    assert bucket_sort_key(backup, PositionBucket.QB)[0] == 2


def test_every_tier_has_a_preset_and_presets_only_grow():
    presets = default_tier_presets()
    assert set(presets) == set(AnalyticsTier)
    order = [AnalyticsTier.LITTLE_LEAGUE, AnalyticsTier.HS_BASIC, AnalyticsTier.HS_ADVANCED, AnalyticsTier.AI_POWERED]
    for lower, higher in zip(order, order[1:]):
        assert all(presets[higher].enabled(f) for f in Feature if presets[lower].enabled(f))


def test_primary_position_never_filters_membership():
    lineman = player("L9", "Guard Only", "66", {"LG": 1}, primary="QB")
    assert in_bucket(lineman, PositionBucket.OL)
    assert not in_bucket(lineman, PositionBucket.QB)
