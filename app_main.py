"""Application entry point for the lesson quiz learner server."""

from __future__ import annotations

import argparse
from pathlib import Path
import socket

from lesson_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from lesson_quiz.core.models import DisplayMode
from lesson_quiz.core.quiz_manager import QuizManager
from lesson_quiz.core.services.collaborators import FileContentSource, JsonFileDraftStore
from lesson_quiz.server.api_server import start_api_server
from lesson_quiz.utils.logging_config import configure_logging


def _determine_learner_url(port: int) -> str:
    """Best-effort determination of the local IP for the learner-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve a lesson quiz to one learner.")
    parser.add_argument("quiz_file", type=Path, help="Quiz document in JSON format")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--seed", type=int, default=None, help="Seed for option and candidate order")
    parser.add_argument(
        "--display-mode",
        choices=[mode.value for mode in DisplayMode],
        default=None,
        help="Override the quiz document's display mode",
    )
    parser.add_argument("--session-id", default=None, help="Session id used to key saved drafts")
    parser.add_argument("--drafts", type=Path, default=None, help="Directory for saved drafts")
    return parser.parse_args()


def main() -> None:
    """Initialize logging, load the quiz and serve it until interrupted."""
    args = _parse_args()
    logger = configure_logging()
    logger.info("Starting lesson quiz server…")

    quiz_manager = QuizManager(
        content_source=FileContentSource(args.quiz_file),
        draft_store=JsonFileDraftStore(args.drafts) if args.drafts else None,
        session_id=args.session_id,
        seed=args.seed,
        display_mode=DisplayMode(args.display_mode) if args.display_mode else None,
    )
    if not quiz_manager.load_content():
        logger.warning("Quiz content not available yet; learners will see a waiting page.")
    elif quiz_manager.resume_draft():
        logger.info("Resumed saved progress for session %s.", quiz_manager.session_id)

    thread = start_api_server(quiz_manager=quiz_manager, host=args.host, port=args.port)
    logger.info("Learner page available at %s", _determine_learner_url(args.port))
    try:
        thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down.")
    finally:
        quiz_manager.close()


if __name__ == "__main__":
    main()
