"""Per-subject memory of the last trajectory request."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from trajview.model.state import TrajectoryRequest
from trajview.services.cache import FreshnessPolicy, ResourceCache

logger = logging.getLogger(__name__)

# Kept for the life of the cache.
MEMORY_POLICY = FreshnessPolicy(stale_after=None, retention=None)


def request_key(subject: str) -> Tuple[str, str]:
    return ("trajectory-request", subject)


class RequestMemory:
    """Remember the last trajectory request per subject in the shared cache.

    The rendering surface is recreated whenever the user navigates between
    subjects; storing the request in the process-wide cache lets the viewer
    restore the previous frames and selection on return.
    """

    def __init__(self, cache: ResourceCache) -> None:
        self._cache = cache

    def remember(self, subject: Optional[str], request: TrajectoryRequest) -> None:
        """Store ``request`` as the latest request for ``subject``.

        Parameters
        ----------
        subject
            Project instance id. Ignored when absent.
        request
            Request to remember.
        """

        if not subject:
            return
        logger.debug("Remembering request subject=%s request=%s", subject, request)
        self._cache.set_data(request_key(subject), request, policy=MEMORY_POLICY)

    def recall(self, subject: Optional[str]) -> Optional[TrajectoryRequest]:
        """Return the last request stored for ``subject``.

        Parameters
        ----------
        subject
            Project instance id.

        Returns
        -------
        TrajectoryRequest or None
            Remembered request, or ``None`` when nothing was stored.
        """

        if not subject:
            return None
        entry = self._cache.get(request_key(subject))
        if entry is None:
            return None
        return entry.value

    def forget(self, subject: str) -> None:
        self._cache.remove(request_key(subject))
