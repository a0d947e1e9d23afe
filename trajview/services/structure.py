"""Structure loading and decoding."""

from __future__ import annotations

from concurrent.futures import Future
import logging
from typing import Optional, Tuple

from trajview.config import MODEL_FORMAT, STRUCTURE_RETENTION, STRUCTURE_STALE_AFTER
from trajview.model.state import LoadResult, StructurePayload
from trajview.services.cache import FreshnessPolicy, ResourceCache
from trajview.services.client import ProjectClient
from trajview.services.loader import CachedLoader

logger = logging.getLogger(__name__)

STRUCTURE_POLICY = FreshnessPolicy(
    stale_after=STRUCTURE_STALE_AFTER, retention=STRUCTURE_RETENTION
)


def structure_key(subject: str, selection: Optional[str] = None) -> Tuple[str, str, str]:
    return ("structure", subject, selection or "")


def decode_structure_payload(payload: object) -> str:
    """Decode a raw structure response into text.

    Parameters
    ----------
    payload
        Text or bytes-like response body.

    Returns
    -------
    str
        Decoded text, or an empty string when decoding fails.
    """

    if isinstance(payload, str):
        return payload
    if isinstance(payload, (bytes, bytearray, memoryview)):
        try:
            return bytes(payload).decode("utf-8")
        except UnicodeDecodeError:
            logger.exception("Failed to decode structure payload")
            return ""
    logger.error("Failed to decode structure payload of type %s", type(payload).__name__)
    return ""


class StructureLoader(CachedLoader):
    """Load structures for ``(subject, selection)`` through the shared cache.

    Attributes
    ----------
    _client
        Structure-fetch collaborator.
    """

    policy = STRUCTURE_POLICY

    def __init__(
        self,
        cache: ResourceCache,
        client: ProjectClient,
        policy: Optional[FreshnessPolicy] = None,
    ) -> None:
        super().__init__(cache, policy)
        self._client = client

    def load(self, subject: Optional[str], selection: Optional[str] = None) -> LoadResult:
        """Return the structure state for a subject, fetching when needed.

        Parameters
        ----------
        subject
            Project instance id. The loader is disabled when absent.
        selection
            Optional atom selection.

        Returns
        -------
        LoadResult
            Structure payload, loading flags and error.
        """

        key = structure_key(subject, selection) if subject else None
        return self._read(key)

    def fetch(self, subject: str, selection: Optional[str] = None) -> Future:
        """Return a future resolving to the structure payload.

        Parameters
        ----------
        subject
            Project instance id.
        selection
            Optional atom selection.

        Returns
        -------
        concurrent.futures.Future
            Future resolving to a :class:`StructurePayload`.
        """
        return self._request(structure_key(subject, selection))

    def refetch(self, subject: str, selection: Optional[str] = None) -> LoadResult:
        return self._read(structure_key(subject, selection), force=True)

    def _produce(self, key: Tuple[str, str, str]) -> StructurePayload:
        _, subject, selection = key
        logger.debug("Fetching structure subject=%s selection=%s", subject, selection)
        raw = self._client.fetch_structure(subject, selection=selection or None)
        return StructurePayload(
            subject=subject,
            text=decode_structure_payload(raw),
            format=MODEL_FORMAT,
            label=f"{subject}.{MODEL_FORMAT}",
        )
