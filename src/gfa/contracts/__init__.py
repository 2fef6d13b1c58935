from .types import (
    AnalyticsTier,
    BlockResult,
    Drive,
    DriveResult,
    EnabledFeatures,
    EventStore,
    Feature,
    ForensicArtifact,
    ParticipationEvent,
    ParticipationType,
    PayloadStatus,
    Phase,
    PlayEvent,
    Player,
    PlayType,
    Possession,
    PositionBucket,
    ReportPayload,
    ReportScope,
    ReportSection,
    ScopeKind,
    SectionStatus,
    SpecialTeamsUnit,
    TierConfig,
    ValidationError,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "AnalyticsTier",
    "BlockResult",
    "Drive",
    "DriveResult",
    "EnabledFeatures",
    "EventStore",
    "Feature",
    "ForensicArtifact",
    "ParticipationEvent",
    "ParticipationType",
    "PayloadStatus",
    "Phase",
    "PlayEvent",
    "PlayType",
    "Player",
    "Possession",
    "PositionBucket",
    "ReportPayload",
    "ReportScope",
    "ReportSection",
    "ScopeKind",
    "SectionStatus",
    "SpecialTeamsUnit",
    "TierConfig",
    "ValidationError",
    "ValidationIssue",
    "ValidationResult",
]
