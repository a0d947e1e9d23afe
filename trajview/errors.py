"""Error types and API error payload helpers."""

from __future__ import annotations

from typing import Dict, Optional


class TrajviewError(Exception):
    """Base exception type for Trajview.

    Attributes
    ----------
    code
        Stable error identifier.
    message
        Human-readable error message.
    details
        Optional detail payload for debugging.
    """

    def __init__(self, code: str, message: str, details: Optional[object] = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    def to_result(self) -> Dict[str, object]:
        """Return a JSON-ready error payload.

        Returns
        -------
        dict
            JSON-ready error payload.
        """
        return error_result(self.code, self.message, self.details)


class FetchError(TrajviewError):
    """Errors raised when a structure or trajectory fetch fails.

    Attributes
    ----------
    code
        ``not_found`` for missing projects, ``fetch_failed`` otherwise.
    message
        Human-readable error message.
    details
        Request URL, status code or transport error text.
    """


class ApiError(TrajviewError):
    """Errors raised by the API bridge layer.

    Attributes
    ----------
    code
        Stable error identifier.
    message
        Human-readable error message.
    details
        Optional detail payload for debugging.
    """


def error_message(error: Optional[BaseException], fallback: str) -> str:
    """Return the display message for an error.

    Parameters
    ----------
    error
        Exception raised by a fetch or reported by the surface.
    fallback
        Message used when the error carries no text.

    Returns
    -------
    str
        Human-readable message.
    """

    if error is None:
        return fallback
    if isinstance(error, TrajviewError):
        return error.message or fallback
    return str(error) or fallback


def error_result(code: str, message: str, details: Optional[object] = None) -> Dict[str, object]:
    """Build an API error payload.

    Parameters
    ----------
    code
        Stable error identifier.
    message
        Human-readable summary.
    details
        Optional detail payload for logging or debugging.

    Returns
    -------
    dict
        JSON-ready error payload.
    """

    return {"ok": False, "error": {"code": code, "message": message, "details": details}}
