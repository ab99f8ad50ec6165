"""Application entry point for ExamRunner."""

from __future__ import annotations

import argparse
from pathlib import Path
import socket
import sys

from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.core.exam_loader import DEFAULT_EXAMS_PATH, ExamImportError, load_exams_from_file
from exam_app.core.exam_manager import ExamManager
from exam_app.core.services.result_store import ResultStore
from exam_app.core.services.shuffler import Shuffler
from exam_app.server.api_server import start_api_server
from exam_app.utils.logging_config import configure_logging


def _determine_student_url(port: int) -> str:
    """Best-effort determination of the local IP for student-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve timed, proctored exams to a browser.")
    parser.add_argument("--host", default=DEFAULT_HOST, help=f"Bind address (default {DEFAULT_HOST})")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Port (default {DEFAULT_PORT})")
    parser.add_argument("--exams", type=Path, default=DEFAULT_EXAMS_PATH, help="JSON file with exam definitions")
    parser.add_argument("--results", type=Path, default=None, help="JSONL file that receives attempt results")
    parser.add_argument("--seed", type=int, default=None, help="Shuffle seed for reproducible question order")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, load exams, and serve the student page."""
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    logger = configure_logging()
    logger.info("Starting ExamRunner…")

    try:
        imported = load_exams_from_file(args.exams)
    except ExamImportError as exc:
        logger.error("Could not load exams: %s", exc)
        sys.exit(1)

    exam_manager = ExamManager(result_store=ResultStore(args.results), shuffler=Shuffler(args.seed))
    try:
        exam_manager.load_exams(imported.exams)
    except ValueError as exc:
        logger.error("Could not load exams: %s", exc)
        sys.exit(1)
    logger.info("Loaded %d exam(s) from %s", len(imported.exams), imported.source_path)

    server_thread, ticker = start_api_server(exam_manager=exam_manager, host=args.host, port=args.port)
    logger.info("Student page available at %s", _determine_student_url(args.port))
    try:
        server_thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down…")
    finally:
        ticker.stop()


if __name__ == "__main__":
    main()
