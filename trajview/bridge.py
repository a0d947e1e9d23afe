"""Python bridge for the JS frontend."""

from __future__ import annotations

import json
import logging
from typing import Dict, Hashable, Optional

from trajview.errors import ApiError, TrajviewError, error_result
from trajview.model import TrajectoryRequest, ViewerModel
from trajview.services.status import SurfaceStatus
from trajview.worker import Worker

logger = logging.getLogger(__name__)


def _optional_str(payload: Dict[str, object], name: str) -> Optional[str]:
    value = payload.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ApiError("invalid_input", f"{name} must be a string")
    return value


class Api:
    """Pywebview API surface for the frontend.

    Attributes
    ----------
    _model
        Viewer model handling data orchestration.
    _worker
        Worker for background execution.
    _window
        Pywebview window instance used to push state.
    _initial_request
        Subject and trajectory request passed via CLI.
    _ui_config
        UI configuration payload for the frontend.
    """

    def __init__(
        self,
        model: ViewerModel,
        worker: Worker,
        initial_request: Optional[Dict[str, Optional[str]]] = None,
        ui_config: Optional[Dict[str, object]] = None,
    ) -> None:
        """Initialize the bridge API.

        Parameters
        ----------
        model
            Viewer model instance.
        worker
            Worker instance for background tasks.
        initial_request
            Optional subject, frames and selection given on the command line.
        ui_config
            Optional UI configuration payload.

        Returns
        -------
        None
            This method does not return a value.
        """

        self._model = model
        self._worker = worker
        self._window = None
        self._initial_request = initial_request
        self._ui_config = ui_config or {}

    def set_window(self, window) -> None:
        """Bind the pywebview window used to push viewer state.

        Parameters
        ----------
        window
            Pywebview window instance.

        Returns
        -------
        None
            This method does not return a value.
        """

        self._window = window

    def on_cache_change(self, key: Hashable) -> None:
        """Schedule a state push after a cache entry changed.

        Parameters
        ----------
        key
            Changed cache key.
        """
        if self._window is None:
            return
        self._worker.submit(self._push_state)

    def _push_state(self) -> None:
        try:
            state = self._model.snapshot().to_dict()
            script = f"window.trajview && window.trajview.onViewerState({json.dumps(state)})"
            self._window.evaluate_js(script)
        except Exception:
            logger.exception("Failed to push viewer state")

    def get_initial_request(self, payload: Optional[Dict[str, object]] = None):
        """Return the CLI-provided subject and request once.

        Parameters
        ----------
        payload
            Unused payload placeholder.

        Returns
        -------
        dict
            Payload with subject, frames and selection.
        """

        if not self._initial_request:
            return {"ok": True, "subject": None, "frames": None, "selection": None}
        initial = self._initial_request
        self._initial_request = None
        logger.debug("get_initial_request returned subject=%s", initial.get("subject"))
        return {
            "ok": True,
            "subject": initial.get("subject"),
            "frames": initial.get("frames"),
            "selection": initial.get("selection"),
        }

    def get_ui_config(self, payload: Optional[Dict[str, object]] = None):
        """Return UI configuration for the frontend.

        Parameters
        ----------
        payload
            Unused payload placeholder.

        Returns
        -------
        dict
            Payload with UI configuration.
        """

        return {"ok": True, "config": self._ui_config}

    def set_subject(self, payload: Dict[str, object]):
        """Switch the viewer to another subject.

        Parameters
        ----------
        payload
            Payload containing ``subject`` (``null`` clears the viewer).

        Returns
        -------
        dict
            Viewer state payload.
        """

        if not isinstance(payload, dict):
            return error_result("invalid_input", "payload must be an object")
        try:
            subject = _optional_str(payload, "subject")
            logger.debug("set_subject subject=%s", subject)
            snapshot = self._model.set_subject(subject)
            return {"ok": True, "state": snapshot.to_dict()}
        except TrajviewError as exc:
            logger.exception("set_subject failed")
            return exc.to_result()
        except Exception as exc:
            logger.exception("set_subject unexpected error")
            return error_result("unexpected", "Unexpected error", str(exc))

    def load_trajectory(self, payload: Dict[str, object]):
        """Request trajectory frames for the current subject.

        Parameters
        ----------
        payload
            Payload containing optional ``frames`` and ``selection``.

        Returns
        -------
        dict
            Viewer state payload.
        """

        if not isinstance(payload, dict):
            return error_result("invalid_input", "payload must be an object")
        try:
            request = TrajectoryRequest(
                frame_range=_optional_str(payload, "frames"),
                selection=_optional_str(payload, "selection"),
            )
            if not self._model.subject:
                raise ApiError("no_subject", "No subject selected")
            logger.debug("load_trajectory request=%s", request)
            snapshot = self._model.load_trajectory(request)
            return {"ok": True, "state": snapshot.to_dict()}
        except TrajviewError as exc:
            logger.exception("load_trajectory failed")
            return exc.to_result()
        except Exception as exc:
            logger.exception("load_trajectory unexpected error")
            return error_result("unexpected", "Unexpected error", str(exc))

    def retry_structure(self, payload: Optional[Dict[str, object]] = None):
        try:
            logger.debug("retry_structure requested")
            snapshot = self._model.retry_structure()
            return {"ok": True, "state": snapshot.to_dict()}
        except Exception as exc:
            logger.exception("retry_structure unexpected error")
            return error_result("unexpected", "Unexpected error", str(exc))

    def retry_trajectory(self, payload: Optional[Dict[str, object]] = None):
        try:
            logger.debug("retry_trajectory requested")
            snapshot = self._model.retry_trajectory()
            return {"ok": True, "state": snapshot.to_dict()}
        except Exception as exc:
            logger.exception("retry_trajectory unexpected error")
            return error_result("unexpected", "Unexpected error", str(exc))

    def get_viewer_state(self, payload: Optional[Dict[str, object]] = None):
        """Return the current viewer state.

        Parameters
        ----------
        payload
            Unused payload placeholder.

        Returns
        -------
        dict
            Viewer state payload.
        """

        try:
            return {"ok": True, "state": self._model.snapshot().to_dict()}
        except Exception as exc:
            logger.exception("get_viewer_state unexpected error")
            return error_result("unexpected", "Unexpected error", str(exc))

    def report_status(self, payload: Dict[str, object]):
        """Record a status change reported by the rendering surface.

        Parameters
        ----------
        payload
            Payload containing ``status`` and optional ``message``.

        Returns
        -------
        dict
            Payload with the reduced load state.
        """

        if not isinstance(payload, dict):
            return error_result("invalid_input", "payload must be an object")
        raw_status = payload.get("status")
        try:
            status = SurfaceStatus(raw_status)
        except ValueError:
            return error_result("invalid_input", f"Unknown status: {raw_status}")
        message = payload.get("message")
        if status is SurfaceStatus.ERROR:
            logger.error("Rendering surface failed: %s", message)
        state = self._model.report_surface_status(
            status, str(message) if message is not None else None
        )
        return {"ok": True, "load_state": state.to_dict()}

    def log_client_error(self, payload: Dict[str, object]):
        """Log a frontend error into the Python logs.

        Parameters
        ----------
        payload
            Payload containing the error message.

        Returns
        -------
        dict
            Acknowledgement payload.
        """

        if not isinstance(payload, dict):
            return error_result("invalid_input", "payload must be an object")
        message = payload.get("message")
        if not message:
            return error_result("invalid_input", "message is required")
        logger.error("Client error: %s", message)
        return {"ok": True}
