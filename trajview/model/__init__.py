"""Model package exports."""

from trajview.model.model import ViewerModel, ViewerSnapshot
from trajview.model.state import (
    NO_SOURCE,
    LoadResult,
    StructurePayload,
    StructureSource,
    TrajectoryPayload,
    TrajectoryRequest,
    TrajectorySource,
)

__all__ = [
    "LoadResult",
    "NO_SOURCE",
    "StructurePayload",
    "StructureSource",
    "TrajectoryPayload",
    "TrajectoryRequest",
    "TrajectorySource",
    "ViewerModel",
    "ViewerSnapshot",
]
