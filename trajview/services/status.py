"""Viewer status reduction from fetch state and surface feedback."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
import logging
import threading
from typing import Dict, Optional, Union

from trajview.config import SURFACE_ERROR_FALLBACK, TRAJECTORY_ERROR_FALLBACK
from trajview.errors import error_message
from trajview.model.state import LoadResult, TrajectoryRequest

logger = logging.getLogger(__name__)


class ViewerStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


class SurfaceStatus(str, Enum):
    """Status values reported by the rendering surface."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class FetchObserved:
    """Trajectory loader state for the currently remembered request.

    Attributes
    ----------
    request
        Active request, ``None`` when nothing is remembered.
    is_fetching
        A fetch for the request is in flight.
    has_value
        Coordinates for the request are available.
    error
        Error of the failed fetch.
    generation
        Cache generation the state was read from.
    subject
        Subject the request belongs to. Generations are only comparable
        within one subject and request.
    """

    request: Optional[TrajectoryRequest]
    is_fetching: bool = False
    has_value: bool = False
    error: Optional[BaseException] = None
    generation: int = 0
    subject: Optional[str] = None

    @classmethod
    def from_result(
        cls,
        subject: Optional[str],
        request: Optional[TrajectoryRequest],
        result: LoadResult,
    ) -> "FetchObserved":
        if request is None:
            return cls(request=None, subject=subject)
        return cls(
            subject=subject,
            request=request,
            is_fetching=result.is_fetching,
            has_value=result.value is not None,
            error=result.error,
            generation=result.generation,
        )


@dataclass(frozen=True)
class SurfaceReported:
    """Status change pushed by the rendering surface."""

    status: SurfaceStatus
    message: Optional[str] = None


StatusEvent = Union[FetchObserved, SurfaceReported]


@dataclass(frozen=True)
class StatusState:
    """Reduced viewer status.

    Attributes
    ----------
    status
        Effective status shown to the user.
    message
        Error message when ``status`` is ``error``.
    subject
        Subject the state was observed for.
    request
        Request the fetch fields refer to.
    generation
        Fetch generation the fetch fields refer to.
    fetch_status
        Status derived from the trajectory loader alone.
    fetch_message
        Fetch error message.
    fetch_ready
        Coordinates for the request are available.
    surface_override
        Loading or error state reported by the surface, pending recovery.
    surface_message
        Surface error message.
    surface_ready
        The surface reported readiness since the last request change.
    surface_wired
        Whether surface feedback is connected. Without it, readiness is
        assumed once loading completes.
    """

    status: ViewerStatus = ViewerStatus.IDLE
    message: Optional[str] = None
    subject: Optional[str] = None
    request: Optional[TrajectoryRequest] = None
    generation: int = 0
    fetch_status: ViewerStatus = ViewerStatus.IDLE
    fetch_message: Optional[str] = None
    fetch_ready: bool = False
    surface_override: Optional[ViewerStatus] = None
    surface_message: Optional[str] = None
    surface_ready: bool = False
    surface_wired: bool = True

    def to_dict(self) -> Dict[str, object]:
        return {"status": self.status.value, "message": self.message}


def _derive(state: StatusState) -> StatusState:
    if state.surface_override is not None:
        status = state.surface_override
        message = state.surface_message if status is ViewerStatus.ERROR else None
    elif state.fetch_status is not ViewerStatus.IDLE:
        status = state.fetch_status
        message = state.fetch_message if status is ViewerStatus.ERROR else None
    elif state.fetch_ready and state.surface_wired and not state.surface_ready:
        status = ViewerStatus.LOADING
        message = None
    else:
        status = ViewerStatus.IDLE
        message = None
    return dataclasses.replace(state, status=status, message=message)


def _reduce_fetch(state: StatusState, event: FetchObserved) -> StatusState:
    if event.subject != state.subject:
        # The surface is recreated per subject; nothing carries over.
        state = StatusState(subject=event.subject, surface_wired=state.surface_wired)
    if event.request is None:
        if state.request is None:
            return state
        return StatusState(subject=state.subject, surface_wired=state.surface_wired)
    if event.request != state.request or event.generation > state.generation:
        # A new request or fetch generation clears surface errors.
        state = StatusState(
            subject=state.subject,
            request=event.request,
            generation=event.generation,
            surface_wired=state.surface_wired,
        )
    if event.error is not None:
        fetch_status = ViewerStatus.ERROR
        fetch_message = error_message(event.error, TRAJECTORY_ERROR_FALLBACK)
    elif event.is_fetching:
        fetch_status = ViewerStatus.LOADING
        fetch_message = None
    else:
        fetch_status = ViewerStatus.IDLE
        fetch_message = None
    return dataclasses.replace(
        state,
        fetch_status=fetch_status,
        fetch_message=fetch_message,
        fetch_ready=event.has_value and not event.is_fetching,
    )


def _reduce_surface(state: StatusState, event: SurfaceReported) -> StatusState:
    if event.status is SurfaceStatus.LOADING:
        return dataclasses.replace(
            state, surface_override=ViewerStatus.LOADING, surface_message=None, surface_ready=False
        )
    if event.status is SurfaceStatus.ERROR:
        return dataclasses.replace(
            state,
            surface_override=ViewerStatus.ERROR,
            surface_message=event.message or SURFACE_ERROR_FALLBACK,
            surface_ready=False,
        )
    return dataclasses.replace(
        state,
        surface_override=None,
        surface_message=None,
        surface_ready=event.status is SurfaceStatus.READY,
    )


def reduce_status(state: StatusState, event: StatusEvent) -> StatusState:
    """Apply one event to the status state.

    Parameters
    ----------
    state
        Current state.
    event
        Fetch observation or surface report.

    Returns
    -------
    StatusState
        New state with the effective ``status`` and ``message`` derived.
    """

    if isinstance(event, FetchObserved):
        state = _reduce_fetch(state, event)
    elif isinstance(event, SurfaceReported):
        state = _reduce_surface(state, event)
    else:
        raise TypeError(f"Unknown status event: {event!r}")
    return _derive(state)


class StatusReporter:
    """Hold the viewer status and apply events to it."""

    def __init__(self, surface_wired: bool = True) -> None:
        self._lock = threading.Lock()
        self._state = StatusState(surface_wired=surface_wired)

    @property
    def state(self) -> StatusState:
        with self._lock:
            return self._state

    @property
    def status(self) -> ViewerStatus:
        return self.state.status

    @property
    def message(self) -> Optional[str]:
        return self.state.message

    def dispatch(self, event: StatusEvent) -> StatusState:
        """Apply ``event`` and return the new state.

        Parameters
        ----------
        event
            Fetch observation or surface report.

        Returns
        -------
        StatusState
            Updated state.
        """

        with self._lock:
            previous = self._state
            self._state = reduce_status(previous, event)
            state = self._state
        if state.status is not previous.status:
            logger.debug(
                "Viewer status %s -> %s message=%s",
                previous.status.value,
                state.status.value,
                state.message,
            )
        return state

    def reset(self, subject: Optional[str] = None) -> StatusState:
        """Return to ``idle`` for a new subject, keeping ``surface_wired``.

        Parameters
        ----------
        subject
            Subject the next observations belong to.

        Returns
        -------
        StatusState
            The fresh state.
        """

        with self._lock:
            self._state = StatusState(
                subject=subject, surface_wired=self._state.surface_wired
            )
            return self._state

    def observe_fetch(
        self,
        subject: Optional[str],
        request: Optional[TrajectoryRequest],
        result: LoadResult,
    ) -> StatusState:
        return self.dispatch(FetchObserved.from_result(subject, request, result))

    def report_surface(self, status: SurfaceStatus, message: Optional[str] = None) -> StatusState:
        return self.dispatch(SurfaceReported(SurfaceStatus(status), message))
