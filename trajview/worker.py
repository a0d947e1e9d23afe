"""Execution helpers for background fetches."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

from trajview.config import FETCH_WORKERS


class Worker:
    """Thread pool running network fetches off the bridge thread."""

    def __init__(self, max_workers: int = FETCH_WORKERS) -> None:
        """Initialize the executor.

        Parameters
        ----------
        max_workers
            Number of thread pool workers. Structure and trajectory fetches
            for different keys run concurrently up to this limit.

        Returns
        -------
        None
            This method does not return a value.
        """

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="trajview-fetch"
        )

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any):
        """Run work in the thread pool.

        Parameters
        ----------
        fn
            Callable to execute.
        *args
            Positional arguments to pass to ``fn``.
        **kwargs
            Keyword arguments to pass to ``fn``.

        Returns
        -------
        concurrent.futures.Future
            Future for the submitted work.
        """
        return self._executor.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting work.

        Parameters
        ----------
        wait
            Block until queued work finishes. Queued work is cancelled
            otherwise.
        """
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
