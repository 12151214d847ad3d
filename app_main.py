"""Application entry point for the ExamQuest server."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from exam_quest.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_quest.core.services.memory_store import MemoryDocumentStore
from exam_quest.core.session_manager import SessionManager
from exam_quest.server.api_server import run_api_server
from exam_quest.utils.logging_config import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve timed exam sessions over HTTP.")
    parser.add_argument("--host", default=DEFAULT_HOST, help=f"Interface to bind (default {DEFAULT_HOST})")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Port to listen on (default {DEFAULT_PORT})")
    parser.add_argument(
        "--data",
        type=Path,
        default=None,
        help="JSON snapshot with 'exams', 'questions' and 'users' collections to preload",
    )
    parser.add_argument("--log-level", default="info", help="Logging level name (default info)")
    return parser


def load_store(data_path: Path | None) -> MemoryDocumentStore:
    if data_path is None:
        return MemoryDocumentStore()
    snapshot = json.loads(data_path.read_text(encoding="utf-8"))
    return MemoryDocumentStore.from_snapshot(snapshot)


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, load the document store and serve the API."""
    args = _build_parser().parse_args(argv)
    logger = configure_logging(args.log_level)
    logger.info("Starting ExamQuest server…")

    store = load_store(args.data)
    manager = SessionManager(store)
    logger.info("Serving on http://%s:%d/", args.host, args.port)
    run_api_server(manager, store.fetch_profile, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
