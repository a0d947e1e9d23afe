from trajview.config import SURFACE_ERROR_FALLBACK, TRAJECTORY_ERROR_FALLBACK
from trajview.errors import FetchError
from trajview.model.state import LoadResult, TrajectoryRequest
from trajview.services.status import (
    FetchObserved,
    StatusReporter,
    StatusState,
    SurfaceReported,
    SurfaceStatus,
    ViewerStatus,
    reduce_status,
)

REQUEST = TrajectoryRequest(frame_range="0-100", selection="protein")


def _fetching(generation: int = 1) -> FetchObserved:
    return FetchObserved(request=REQUEST, is_fetching=True, generation=generation)


def _ready(generation: int = 1) -> FetchObserved:
    return FetchObserved(request=REQUEST, has_value=True, generation=generation)


def _ready_for(subject: str, generation: int = 1) -> FetchObserved:
    return FetchObserved(request=REQUEST, has_value=True, generation=generation, subject=subject)


def _failed(error=None, generation: int = 1) -> FetchObserved:
    return FetchObserved(request=REQUEST, error=error, generation=generation)


def test_initial_state_is_idle() -> None:
    reporter = StatusReporter()
    assert reporter.status is ViewerStatus.IDLE
    assert reporter.message is None


def test_fetch_moves_to_loading() -> None:
    state = reduce_status(StatusState(), _fetching())
    assert state.status is ViewerStatus.LOADING


def test_no_request_stays_idle_while_fetching_elsewhere() -> None:
    state = reduce_status(StatusState(), FetchObserved(request=None))
    assert state.status is ViewerStatus.IDLE


def test_failure_moves_to_error_with_message() -> None:
    state = reduce_status(StatusState(), _fetching())
    state = reduce_status(state, _failed(FetchError("fetch_failed", "connection reset")))
    assert state.status is ViewerStatus.ERROR
    assert state.message == "connection reset"


def test_failure_without_message_uses_fallback() -> None:
    state = reduce_status(StatusState(), _failed(RuntimeError()))
    assert state.message == TRAJECTORY_ERROR_FALLBACK


def test_ready_waits_for_surface_when_wired() -> None:
    state = reduce_status(StatusState(), _fetching())
    state = reduce_status(state, _ready())
    assert state.status is ViewerStatus.LOADING
    state = reduce_status(state, SurfaceReported(SurfaceStatus.READY))
    assert state.status is ViewerStatus.IDLE


def test_ready_is_idle_without_surface_feedback() -> None:
    state = StatusState(surface_wired=False)
    state = reduce_status(state, _fetching())
    state = reduce_status(state, _ready())
    assert state.status is ViewerStatus.IDLE


def test_request_cleared_resets_to_idle() -> None:
    state = reduce_status(StatusState(), _failed(FetchError("fetch_failed", "boom")))
    state = reduce_status(state, SurfaceReported(SurfaceStatus.ERROR, "parse"))
    state = reduce_status(state, FetchObserved(request=None))
    assert state.status is ViewerStatus.IDLE
    assert state.message is None
    assert state.surface_override is None


def test_error_does_not_self_clear() -> None:
    state = reduce_status(StatusState(), _failed(FetchError("fetch_failed", "boom")))
    for _ in range(3):
        state = reduce_status(state, _failed(FetchError("fetch_failed", "boom")))
    assert state.status is ViewerStatus.ERROR


def test_new_request_clears_error() -> None:
    state = reduce_status(StatusState(), _failed(FetchError("fetch_failed", "boom")))
    other = TrajectoryRequest(frame_range="0-10")
    state = reduce_status(state, FetchObserved(request=other, is_fetching=True, generation=1))
    assert state.status is ViewerStatus.LOADING
    assert state.message is None


def test_surface_error_overrides_fetch_state() -> None:
    state = reduce_status(StatusState(), _ready())
    state = reduce_status(state, SurfaceReported(SurfaceStatus.LOADING))
    assert state.status is ViewerStatus.LOADING
    state = reduce_status(state, SurfaceReported(SurfaceStatus.ERROR, "bad xtc header"))
    assert state.status is ViewerStatus.ERROR
    assert state.message == "bad xtc header"
    # Re-observing the same fetch keeps the surface error.
    state = reduce_status(state, _ready())
    assert state.status is ViewerStatus.ERROR
    state = reduce_status(state, SurfaceReported(SurfaceStatus.READY))
    assert state.status is ViewerStatus.IDLE


def test_surface_error_without_message_uses_fallback() -> None:
    state = reduce_status(StatusState(), SurfaceReported(SurfaceStatus.ERROR))
    assert state.message == SURFACE_ERROR_FALLBACK


def test_surface_error_reported_without_request() -> None:
    reporter = StatusReporter()
    reporter.observe_fetch("P1", None, LoadResult())
    reporter.report_surface(SurfaceStatus.ERROR, "parse failure")
    state = reporter.observe_fetch("P1", None, LoadResult())
    assert state.status is ViewerStatus.ERROR


def test_new_generation_clears_surface_error() -> None:
    state = reduce_status(StatusState(), _ready(generation=1))
    state = reduce_status(state, SurfaceReported(SurfaceStatus.ERROR, "bad frames"))
    state = reduce_status(state, _fetching(generation=2))
    assert state.status is ViewerStatus.LOADING
    assert state.surface_override is None


def test_reporter_from_load_result() -> None:
    reporter = StatusReporter()
    state = reporter.observe_fetch(
        "P1", REQUEST, LoadResult(is_loading=True, is_fetching=True, generation=1)
    )
    assert state.status is ViewerStatus.LOADING
    assert state.to_dict() == {"status": "loading", "message": None}


def test_subject_change_drops_surface_state_for_shared_request() -> None:
    state = reduce_status(StatusState(), _ready_for("P1", generation=3))
    state = reduce_status(state, SurfaceReported(SurfaceStatus.ERROR, "bad frames"))
    assert state.status is ViewerStatus.ERROR

    # Same request, lower generation under another subject.
    state = reduce_status(state, _ready_for("P2"))

    assert state.subject == "P2"
    assert state.generation == 1
    assert state.surface_override is None
    assert state.status is ViewerStatus.LOADING


def test_subject_change_drops_surface_readiness() -> None:
    state = reduce_status(StatusState(), _ready_for("P1"))
    state = reduce_status(state, SurfaceReported(SurfaceStatus.READY))
    assert state.status is ViewerStatus.IDLE

    state = reduce_status(state, _ready_for("P2"))

    assert not state.surface_ready
    assert state.status is ViewerStatus.LOADING


def test_subject_change_without_request_drops_surface_error() -> None:
    reporter = StatusReporter()
    reporter.observe_fetch("P1", None, LoadResult())
    reporter.report_surface(SurfaceStatus.ERROR, "parse failure")

    state = reporter.observe_fetch("P2", None, LoadResult())

    assert state.status is ViewerStatus.IDLE
    assert state.message is None


def test_reset_keeps_surface_wiring() -> None:
    reporter = StatusReporter(surface_wired=False)
    reporter.report_surface(SurfaceStatus.ERROR, "parse failure")

    state = reporter.reset("P2")

    assert state.status is ViewerStatus.IDLE
    assert state.subject == "P2"
    assert not state.surface_wired
