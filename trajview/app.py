"""Trajview application entrypoint."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Dict, Optional

import webview

from trajview import config
from trajview.bridge import Api
from trajview.errors import TrajviewError
from trajview.logging_config import configure_logging
from trajview.model import ViewerModel
from trajview.services.cache import create_cache
from trajview.services.client import ProjectClient, format_instance_id
from trajview.worker import Worker

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"{config.APP_NAME}")
    parser.add_argument("subject", nargs="?", help="Project accession, e.g. MD-A00001")
    parser.add_argument(
        "--replica",
        dest="replica",
        default=None,
        help="Replica number appended to the project accession",
    )
    parser.add_argument(
        "--frames",
        dest="frames",
        default=None,
        help="Frame range to load on startup, e.g. 0-100",
    )
    parser.add_argument(
        "--selection",
        dest="selection",
        default=None,
        help="Atom selection for the startup trajectory",
    )
    parser.add_argument(
        "--api-url",
        dest="api_url",
        default=config.API_URL,
        help="MDposit REST API root",
    )
    parser.add_argument(
        "--url",
        dest="url",
        default=None,
        help=(
            "Viewer page hosting the rendering surface. Required unless a page "
            f"is installed at {config.INDEX_PATH}"
        ),
    )
    parser.add_argument(
        "--log-file",
        dest="log_file",
        default=None,
        help="Write debug logs to this file instead of stdout",
    )
    return parser.parse_args(argv[1:])


def initial_request_from_args(args: argparse.Namespace) -> Optional[Dict[str, Optional[str]]]:
    """Build the startup request handed to the frontend.

    Parameters
    ----------
    args
        Parsed command line arguments.

    Returns
    -------
    dict or None
        Subject, frames and selection, or ``None`` without a subject.
    """

    if not args.subject:
        return None
    return {
        "subject": format_instance_id(args.subject, args.replica),
        "frames": args.frames,
        "selection": args.selection,
    }


def resolve_viewer_url(url: Optional[str] = None) -> str:
    """Pick the page loaded into the window.

    Parameters
    ----------
    url
        Page URL or path given on the command line.

    Returns
    -------
    str
        ``url`` when given, otherwise the installed page path.

    Raises
    ------
    TrajviewError
        If no URL is given and no page is installed.
    """

    if url:
        return url
    if config.INDEX_PATH.is_file():
        return str(config.INDEX_PATH)
    raise TrajviewError(
        "no_viewer_page",
        "No viewer page installed; pass --url with the page hosting the rendering surface",
        str(config.INDEX_PATH),
    )


def create_app(
    initial_request: Optional[Dict[str, Optional[str]]] = None,
    api_url: str = config.API_URL,
    url: Optional[str] = None,
):
    """Create the pywebview window and API bridge.

    Parameters
    ----------
    initial_request
        Optional subject and trajectory request to open on startup.
    api_url
        MDposit REST API root.
    url
        Viewer page URL or path; the installed page when omitted.

    Returns
    -------
    webview.Window
        Configured pywebview window.

    Raises
    ------
    TrajviewError
        If no viewer page is available.
    """

    url = resolve_viewer_url(url)
    worker = Worker()
    cache = create_cache(submit=worker.submit)
    model = ViewerModel(cache, ProjectClient(base_url=api_url))
    api = Api(
        model=model,
        worker=worker,
        initial_request=initial_request,
        ui_config={
            "model_format": config.MODEL_FORMAT,
            "coordinate_format": config.COORDINATE_FORMAT,
        },
    )
    cache.add_listener(api.on_cache_change)

    window = webview.create_window(
        config.WINDOW_TITLE,
        url=url,
        width=config.DEFAULT_WINDOW_WIDTH,
        height=config.DEFAULT_WINDOW_HEIGHT,
        resizable=True,
        js_api=api,
    )
    api.set_window(window)
    window.events.closed += lambda: worker.shutdown(wait=False)
    return window


def main() -> None:
    """Run the Trajview application.

    Returns
    -------
    None
        This function does not return a value.
    """

    args = _parse_args(sys.argv)
    configure_logging(args.log_file)
    logger.debug("Starting application")
    try:
        url = resolve_viewer_url(args.url)
    except TrajviewError as exc:
        logger.error("%s (%s)", exc.message, exc.details)
        sys.exit(exc.message)
    initial_request = initial_request_from_args(args)
    if initial_request:
        logger.debug("Launching with subject %s", initial_request["subject"])
    else:
        logger.debug("Launching without subject")
    create_app(initial_request=initial_request, api_url=args.api_url, url=url)
    gui = os.environ.get("PYWEBVIEW_GUI") or None
    if gui:
        logger.debug("Using pywebview GUI backend: %s", gui)
    else:
        logger.debug("Using pywebview GUI backend: auto")
    webview.start(debug=False, gui=gui)


if __name__ == "__main__":
    main()
