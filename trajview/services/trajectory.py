"""Trajectory loading."""

from __future__ import annotations

from concurrent.futures import Future
import logging
from typing import Optional, Tuple

from trajview.config import COORDINATE_FORMAT, TRAJECTORY_RETENTION
from trajview.model.state import LoadResult, TrajectoryPayload, TrajectoryRequest
from trajview.services.cache import FreshnessPolicy, ResourceCache
from trajview.services.client import ProjectClient
from trajview.services.loader import CachedLoader

logger = logging.getLogger(__name__)

# Coordinate payloads are large; never refetch one within a session.
TRAJECTORY_POLICY = FreshnessPolicy(stale_after=None, retention=TRAJECTORY_RETENTION)

TrajectoryKey = Tuple[str, str, str, str, str]


def trajectory_key(
    subject: str, request: TrajectoryRequest, coordinate_format: str = COORDINATE_FORMAT
) -> TrajectoryKey:
    frame_range, selection = request.key_parts()
    return ("trajectory", subject, frame_range, selection, coordinate_format)


class TrajectoryLoader(CachedLoader):
    """Load trajectory coordinates for a subject and request.

    Attributes
    ----------
    _client
        Trajectory-fetch collaborator.
    """

    policy = TRAJECTORY_POLICY

    def __init__(
        self,
        cache: ResourceCache,
        client: ProjectClient,
        policy: Optional[FreshnessPolicy] = None,
    ) -> None:
        super().__init__(cache, policy)
        self._client = client

    def load(
        self, subject: Optional[str], request: Optional[TrajectoryRequest]
    ) -> LoadResult:
        """Return the trajectory state, fetching when needed.

        Parameters
        ----------
        subject
            Project instance id.
        request
            Frame range and selection. The loader is disabled when either
            ``subject`` or ``request`` is absent.

        Returns
        -------
        LoadResult
            Trajectory payload, loading flags and error.
        """

        key = trajectory_key(subject, request) if subject and request else None
        return self._read(key)

    def fetch(self, subject: str, request: TrajectoryRequest) -> Future:
        return self._request(trajectory_key(subject, request))

    def refetch(self, subject: str, request: TrajectoryRequest) -> LoadResult:
        """Start a new fetch generation for the request.

        Parameters
        ----------
        subject
            Project instance id.
        request
            Frame range and selection.

        Returns
        -------
        LoadResult
            State of the new fetch.
        """
        return self._read(trajectory_key(subject, request), force=True)

    def _produce(self, key: TrajectoryKey) -> TrajectoryPayload:
        _, subject, frame_range, selection, coordinate_format = key
        logger.debug(
            "Fetching trajectory subject=%s frames=%s selection=%s",
            subject,
            frame_range,
            selection,
        )
        data = self._client.fetch_trajectory(
            subject,
            format=coordinate_format,
            frames=frame_range or None,
            selection=selection or None,
        )
        return TrajectoryPayload(
            subject=subject,
            data=bytes(data),
            format=coordinate_format,
            label=f"{subject}.{coordinate_format}",
        )
