from .drives import DriveSet, DriveSummary, classify_terminal, drives_for, estimate_drive_summary, summarize_drives, synthesize
from .positions import POSITION_BUCKETS, buckets_for, bucket_sort_key, in_bucket, members
from .reports import REPORT_NAMES, REPORTS, ReportAssembler, SectionSpec
from .rollup import RollupTable, aggregate, fold
from .service import AnalyticsPaths, AnalyticsService, Snapshot
from .tiers import default_tier_presets, resolve, tier_config_for
from .validation import EventNormalizer, NormalizedEvents, normalize_snapshot

__all__ = [
    "AnalyticsPaths",
    "AnalyticsService",
    "DriveSet",
    "DriveSummary",
    "EventNormalizer",
    "NormalizedEvents",
    "POSITION_BUCKETS",
    "REPORTS",
    "REPORT_NAMES",
    "ReportAssembler",
    "RollupTable",
    "SectionSpec",
    "Snapshot",
    "aggregate",
    "bucket_sort_key",
    "buckets_for",
    "classify_terminal",
    "default_tier_presets",
    "drives_for",
    "estimate_drive_summary",
    "fold",
    "in_bucket",
    "members",
    "normalize_snapshot",
    "resolve",
    "summarize_drives",
    "synthesize",
    "tier_config_for",
]
