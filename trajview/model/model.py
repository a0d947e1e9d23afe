"""Model layer for Trajview."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
from typing import Dict, Optional

from trajview.model.state import (
    LoadResult,
    StructurePayload,
    TrajectoryRequest,
    ViewerSource,
)
from trajview.services.cache import ResourceCache
from trajview.services.client import ProjectClient
from trajview.services.composer import compose_viewer_source
from trajview.services.request_memory import RequestMemory
from trajview.services.status import StatusReporter, StatusState, SurfaceStatus
from trajview.services.structure import StructureLoader
from trajview.services.trajectory import TrajectoryLoader

logger = logging.getLogger(__name__)


def _error_text(error: Optional[BaseException]) -> Optional[str]:
    if error is None:
        return None
    return getattr(error, "message", None) or str(error)


@dataclass(frozen=True)
class ViewerSnapshot:
    """Everything the rendering page needs at one point in time.

    Attributes
    ----------
    subject
        Current project instance id.
    request
        Active trajectory request.
    structure
        Structure loader output.
    trajectory
        Trajectory loader output.
    source
        Composed viewer source.
    status
        Reduced viewer status.
    """

    subject: Optional[str]
    request: Optional[TrajectoryRequest]
    structure: LoadResult
    trajectory: LoadResult
    source: ViewerSource
    status: StatusState

    def to_dict(self) -> Dict[str, object]:
        """Serialize the snapshot for the bridge.

        Returns
        -------
        dict
            JSON-ready snapshot.
        """
        return {
            "subject": self.subject,
            "request": self.request.to_dict() if self.request else None,
            "structure": {
                "loading": self.structure.is_loading,
                "error": _error_text(self.structure.error),
            },
            "trajectory": {
                "loading": self.trajectory.is_loading,
                "fetching": self.trajectory.is_fetching,
                "error": _error_text(self.trajectory.error),
            },
            "source": self.source.to_dict(),
            "load_state": self.status.to_dict(),
        }


class ViewerModel:
    """Data orchestration for one rendering surface.

    The cache is shared process-wide; loaders, request memory and status are
    per surface.

    Attributes
    ----------
    _cache
        Shared resource cache.
    _structures
        Structure loader.
    _trajectories
        Trajectory loader.
    _memory
        Request memory backed by the shared cache.
    _status
        Status reporter.
    _subject
        Current project instance id.
    _request
        Active trajectory request.
    """

    def __init__(
        self,
        cache: ResourceCache,
        client: ProjectClient,
        surface_wired: bool = True,
    ) -> None:
        """Initialize the model.

        Parameters
        ----------
        cache
            Process-wide resource cache.
        client
            Structure and trajectory fetch collaborator.
        surface_wired
            Whether the rendering surface reports status back.

        Returns
        -------
        None
            This method does not return a value.
        """

        self._lock = threading.RLock()
        self._cache = cache
        self._structures = StructureLoader(cache, client)
        self._trajectories = TrajectoryLoader(cache, client)
        self._memory = RequestMemory(cache)
        self._status = StatusReporter(surface_wired=surface_wired)
        self._subject: Optional[str] = None
        self._request: Optional[TrajectoryRequest] = None

    @property
    def subject(self) -> Optional[str]:
        return self._subject

    @property
    def request(self) -> Optional[TrajectoryRequest]:
        return self._request

    def set_subject(self, subject: Optional[str]) -> ViewerSnapshot:
        """Switch to another subject and restore its remembered request.

        Parameters
        ----------
        subject
            Project instance id, or ``None`` to clear the viewer.

        Returns
        -------
        ViewerSnapshot
            State after the switch.
        """

        subject = subject or None
        with self._lock:
            if subject != self._subject:
                logger.debug("Subject changed %s -> %s", self._subject, subject)
                self._status.reset(subject)
            self._subject = subject
            self._request = self._memory.recall(subject)
        return self.snapshot()

    def load_trajectory(self, request: TrajectoryRequest) -> ViewerSnapshot:
        """Request trajectory frames for the current subject.

        Parameters
        ----------
        request
            Frame range and selection.

        Returns
        -------
        ViewerSnapshot
            State after issuing the request. Unchanged without a subject.
        """

        with self._lock:
            if not self._subject:
                logger.debug("load_trajectory ignored without subject")
                return self.snapshot()
            self._request = request
            self._memory.remember(self._subject, request)
        return self.snapshot()

    def retry_structure(self) -> ViewerSnapshot:
        """Refetch the structure of the current subject.

        Returns
        -------
        ViewerSnapshot
            State after issuing the new fetch.
        """

        with self._lock:
            if self._subject:
                logger.debug("Retrying structure subject=%s", self._subject)
                self._structures.refetch(self._subject)
        return self.snapshot()

    def retry_trajectory(self) -> ViewerSnapshot:
        """Refetch the active trajectory request.

        Returns
        -------
        ViewerSnapshot
            State after issuing the new fetch.
        """

        with self._lock:
            if self._subject and self._request:
                logger.debug("Retrying trajectory subject=%s", self._subject)
                self._trajectories.refetch(self._subject, self._request)
        return self.snapshot()

    def report_surface_status(
        self, status: SurfaceStatus, message: Optional[str] = None
    ) -> StatusState:
        return self._status.report_surface(status, message)

    def snapshot(self) -> ViewerSnapshot:
        """Re-derive loader outputs, status and viewer source.

        Returns
        -------
        ViewerSnapshot
            Current state.
        """

        with self._lock:
            subject = self._subject
            request = self._request
            structure = self._structures.load(subject)
            trajectory = self._trajectories.load(subject, request)
            status = self._status.observe_fetch(subject, request, trajectory)
        source = compose_viewer_source(subject, structure, trajectory)
        return ViewerSnapshot(
            subject=subject,
            request=request,
            structure=structure,
            trajectory=trajectory,
            source=source,
            status=status,
        )

    def wait_for_structure(self, timeout: Optional[float] = None) -> Optional[StructurePayload]:
        """Block until the current subject's structure fetch settles.

        Parameters
        ----------
        timeout
            Seconds to wait.

        Returns
        -------
        StructurePayload or None
            Payload, or ``None`` without a subject.

        Raises
        ------
        FetchError
            If the structure fetch failed.
        """

        with self._lock:
            subject = self._subject
        if not subject:
            return None
        return self._structures.fetch(subject).result(timeout=timeout)

    def close(self) -> None:
        self._structures.close()
        self._trajectories.close()
