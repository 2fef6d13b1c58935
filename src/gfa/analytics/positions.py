from __future__ import annotations

from typing import Iterable

from gfa.contracts import Player, PositionBucket

POSITION_BUCKETS: dict[PositionBucket, frozenset[str]] = {
    PositionBucket.QB: frozenset({"QB"}),
    PositionBucket.RB: frozenset({"RB", "HB", "TB", "FB"}),
    PositionBucket.WR_TE: frozenset({"WR", "TE", "SE", "FL", "SLOT", "Y"}),
    PositionBucket.OL: frozenset({"OL", "LT", "LG", "C", "RG", "RT", "T", "G"}),
    PositionBucket.DL: frozenset({"DL", "DE", "DT", "NT"}),
    PositionBucket.LB: frozenset({"LB", "MLB", "ILB", "OLB", "MIKE", "WILL", "SAM"}),
    PositionBucket.DB: frozenset({"CB", "S", "FS", "SS", "DB", "NB"}),
    PositionBucket.K: frozenset({"K"}),
    PositionBucket.P: frozenset({"P"}),
}

_NO_DEPTH = 99


def held_positions(player: Player) -> frozenset[str]:
    return frozenset(code.strip().upper() for code in player.position_depths if code and code.strip())


def buckets_for(player: Player) -> frozenset[PositionBucket]:
    # Membership is over every held position; primary_position never filters.
    held = held_positions(player)
    if not held:
        return frozenset()
    return frozenset(bucket for bucket, codes in POSITION_BUCKETS.items() if held & codes)


def in_bucket(player: Player, bucket: PositionBucket) -> bool:
    return bucket in buckets_for(player)


def best_depth(player: Player, bucket: PositionBucket) -> int:
    codes = POSITION_BUCKETS[bucket]
    ranks = [
        int(rank)
        for code, rank in player.position_depths.items()
        if code and code.strip().upper() in codes and rank is not None
    ]
    return min(ranks) if ranks else _NO_DEPTH


def bucket_sort_key(player: Player, bucket: PositionBucket) -> tuple[int, int, int, str, str]:
    primary_in_bucket = player.primary_position.strip().upper() in POSITION_BUCKETS[bucket]
    return (
        best_depth(player, bucket),
        0 if primary_in_bucket else 1,
        _jersey_key(player.jersey_number),
        player.name,
        player.player_id,
    )


def members(players: Iterable[Player], bucket: PositionBucket) -> list[Player]:
    """Players eligible for a bucket, in presentation order."""
    eligible = [p for p in players if in_bucket(p, bucket)]
    return sorted(eligible, key=lambda p: bucket_sort_key(p, bucket))


def _jersey_key(jersey: str) -> int:
    try:
        return int(jersey)
    except (TypeError, ValueError):
        return _NO_DEPTH * 10
