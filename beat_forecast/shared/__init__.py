from beat_forecast.shared.config import Settings, get_category_mapping, get_config, reload_config
from beat_forecast.shared.errors import (
    CandidateFitFailure,
    ConfigurationError,
    InvalidTimestamp,
    IssueType,
    NoCandidateSucceeded,
    PipelineIssue,
)

__all__ = [
    "get_config",
    "reload_config",
    "get_category_mapping",
    "Settings",
    "IssueType",
    "PipelineIssue",
    "ConfigurationError",
    "InvalidTimestamp",
    "CandidateFitFailure",
    "NoCandidateSucceeded",
]
