"""Derivation of the viewer source from loader outputs."""

from __future__ import annotations

from typing import Optional

from trajview.model.state import (
    NO_SOURCE,
    LoadResult,
    SourcePart,
    StructurePayload,
    StructureSource,
    TrajectoryPayload,
    TrajectorySource,
    ViewerSource,
)


def compose_viewer_source(
    subject: Optional[str], structure: LoadResult, trajectory: LoadResult
) -> ViewerSource:
    """Combine structure and trajectory state into one viewer source.

    Parameters
    ----------
    subject
        Current project instance id.
    structure
        Structure loader output.
    trajectory
        Trajectory loader output.

    Returns
    -------
    ViewerSource
        ``NO_SOURCE`` without a subject or usable structure, a
        :class:`TrajectorySource` when coordinates for the same subject are
        available, otherwise a :class:`StructureSource`. A trajectory failure
        keeps the structure source.
    """

    model: Optional[StructurePayload] = structure.value
    if not subject or model is None or model.subject != subject or not model.text:
        return NO_SOURCE
    model_label = f"{subject}.{model.format}"
    coordinates: Optional[TrajectoryPayload] = trajectory.value
    if coordinates is not None and coordinates.subject == subject:
        return TrajectorySource(
            model=SourcePart(data=model.text, format=model.format, label=model_label),
            coordinates=SourcePart(
                data=coordinates.data,
                format=coordinates.format,
                label=f"{subject}.{coordinates.format}",
            ),
        )
    return StructureSource(data=model.text, format=model.format, label=model_label)
