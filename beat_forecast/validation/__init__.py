"""
Beat Forecast - Validation

Structural checks on the beat-day panel.
"""

from beat_forecast.validation.panel_checks import (
    CheckLevel,
    PanelCheck,
    PanelValidationResult,
    validate_panel,
)

__all__ = [
    "CheckLevel",
    "PanelCheck",
    "PanelValidationResult",
    "validate_panel",
]
