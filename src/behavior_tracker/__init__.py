"""behavior-tracker: Classroom behavior incident tracking and reporting."""

from behavior_tracker.models import (
    Aggregation,
    BehaviorDefinition,
    BehaviorStatus,
    FilterSelection,
    HeatMatrix,
    IncidentRecord,
    KpiSummary,
    OptionIndex,
    ReportViewModel,
)

__version__ = "0.1.0"

__all__ = [
    "Aggregation",
    "BehaviorDefinition",
    "BehaviorStatus",
    "FilterSelection",
    "HeatMatrix",
    "IncidentRecord",
    "KpiSummary",
    "OptionIndex",
    "ReportViewModel",
]
