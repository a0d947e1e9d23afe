"""MDposit REST client for structure and trajectory payloads."""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional, Union
from urllib.parse import quote

import requests

from trajview.config import API_URL, REQUEST_TIMEOUT
from trajview.errors import FetchError

logger = logging.getLogger(__name__)

_REPLICA_SUFFIX = re.compile(r"\.\d+$")


def format_instance_id(project_id: str, replica: Optional[object] = None) -> str:
    """Build a project instance id with a replica suffix.

    Parameters
    ----------
    project_id
        Project accession, e.g. ``MD-A00001``.
    replica
        Optional replica number.

    Returns
    -------
    str
        ``"{project_id}.{replica}"``, or ``project_id`` when no replica is
        given or the id already carries one.
    """

    if replica is None or str(replica).strip() == "":
        return project_id
    if _REPLICA_SUFFIX.search(project_id):
        return project_id
    return f"{project_id}.{str(replica).strip()}"


class ProjectClient:
    """Client for the MDposit project endpoints.

    Attributes
    ----------
    _base_url
        API root without trailing slash.
    _session
        HTTP session used for all requests.
    _timeout
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = API_URL,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout

    def fetch_structure(
        self, subject: str, selection: Optional[str] = None, method: str = "get"
    ) -> Union[bytes, str]:
        """Download the structure of a project instance.

        Parameters
        ----------
        subject
            Project instance id.
        selection
            Optional atom selection.
        method
            ``"get"`` or ``"post"``.

        Returns
        -------
        bytes
            Raw structure payload.

        Raises
        ------
        FetchError
            If the request fails.
        """

        params = {"selection": selection} if selection else None
        return self._request(method, f"projects/{quote(subject, safe='')}/structure", params)

    def fetch_trajectory(
        self,
        subject: str,
        format: Optional[str] = None,
        frames: Optional[str] = None,
        selection: Optional[str] = None,
        method: str = "get",
    ) -> bytes:
        """Download trajectory coordinates of a project instance.

        Parameters
        ----------
        subject
            Project instance id.
        format
            Coordinate format, e.g. ``"xtc"``.
        frames
            Optional frame range.
        selection
            Optional atom selection.
        method
            ``"get"`` or ``"post"``.

        Returns
        -------
        bytes
            Raw coordinate payload.

        Raises
        ------
        FetchError
            If the request fails.
        """

        params: Dict[str, str] = {}
        if format:
            params["format"] = format
        if frames:
            params["frames"] = frames
        if selection:
            params["selection"] = selection
        return self._request(
            method, f"projects/{quote(subject, safe='')}/trajectory", params or None
        )

    def _request(self, method: str, path: str, params: Optional[Dict[str, str]]) -> bytes:
        if method not in ("get", "post"):
            raise ValueError(f"Unsupported method: {method}")
        url = f"{self._base_url}/{path}"
        logger.debug("%s %s params=%s", method.upper(), url, params)
        try:
            response = self._session.request(
                method.upper(), url, params=params, timeout=self._timeout
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            logger.error("Request failed url=%s status=%s", url, status)
            if status == 404:
                raise FetchError("not_found", f"Not found: {path}", url) from exc
            raise FetchError(
                "fetch_failed", f"Request failed with status {status}", url
            ) from exc
        except requests.RequestException as exc:
            logger.error("Request failed url=%s: %s", url, exc)
            raise FetchError("fetch_failed", f"Request failed: {exc}", url) from exc
        return response.content
