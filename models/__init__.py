"""Data models for the PR CI tracker."""

from models.config_models import Config, CredentialsConfig, LauncherConfig, TrackerConfig
from models.data_models import (
    BulkRerunSummary,
    CIJob,
    RecordPatch,
    RerunOutcome,
    RerunOutcomeKind,
    RerunState,
    TrackedPR,
)

__all__ = [
    "Config",
    "CredentialsConfig",
    "LauncherConfig",
    "TrackerConfig",
    "BulkRerunSummary",
    "CIJob",
    "RecordPatch",
    "RerunOutcome",
    "RerunOutcomeKind",
    "RerunState",
    "TrackedPR",
]
