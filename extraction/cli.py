"""CLI entrypoint for running extraction jobs in the foreground.

Usage:
    python -m extraction pdfs
    python -m extraction start "Recall January 2025.pdf"
    python -m extraction start bank.pdf --start-page 40 --max-pages 20 --overwrite
    python -m extraction continue
    python -m extraction status
    python -m extraction clear

Ctrl-C during a job requests a cooperative stop: the page in flight finishes,
the state is saved as stopped and `continue` picks up at the next page.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Set

from dotenv import load_dotenv

log = logging.getLogger(__name__)


def _setup_logging(*, verbose: bool, log_file: Optional[Path]) -> None:
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    root_level = logging.DEBUG if verbose else logging.INFO
    root_logger.setLevel(root_level)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        "%Y-%m-%d %H:%M:%S",
    )
    console_handler = logging.StreamHandler()
    console_handler.setLevel(root_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=20 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="python -m extraction",
        description="Extract MCQs from PDF question banks with a local LLM",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=Path, default=None, help="Also log to this file (rotating)")

    sub = parser.add_subparsers(dest="command", required=True)

    start = sub.add_parser("start", help="Start a new extraction job")
    start.add_argument("document", help="PDF file name inside PDF_DATA_DIR")
    start.add_argument("--start-page", type=int, default=None, help="First page (1-based)")
    start.add_argument("--max-pages", type=int, default=None, help="Maximum number of pages")
    start.add_argument("--overwrite", action="store_true", help="Update matches even when approved")
    start.add_argument("--model", default=None, help="Model name override")

    sub.add_parser("continue", help="Continue the stopped job")
    sub.add_parser("status", help="Print the persisted job statistics")
    sub.add_parser("pdfs", help="List PDFs in the data directory")
    sub.add_parser("clear", help="Forget the persisted job state")

    args = parser.parse_args(argv)
    if args.command == "start":
        for name in ("start_page", "max_pages"):
            value = getattr(args, name)
            if value is not None and value < 1:
                parser.error(f"--{name.replace('_', '-')} must be >= 1")
    return args


def _prepare_database() -> None:
    from database.database import Base, SessionLocal, engine
    from database import crud, models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        crud.seed_vocabulary(db)
    finally:
        db.close()


_stop_tasks: Set["asyncio.Task[object]"] = set()


def _log_stop_outcome(task: "asyncio.Task[object]") -> None:
    _stop_tasks.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        log.error("Stop request failed: %s", error, exc_info=error)


def _stop_requester(orchestrator, loop: asyncio.AbstractEventLoop):
    def _request_stop() -> None:
        log.info("Interrupt received, stopping after the current page...")
        task = loop.create_task(orchestrator.stop_extraction())
        _stop_tasks.add(task)
        task.add_done_callback(_log_stop_outcome)

    return _request_stop


def _install_stop_handler(orchestrator) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, _stop_requester(orchestrator, loop))
    except NotImplementedError:
        # Windows event loops: Ctrl-C falls back to KeyboardInterrupt
        pass


async def _run(args: argparse.Namespace) -> int:
    from extraction.errors import ConfigurationError
    from extraction.schemas import ExtractionOptions, JobStatus
    from extraction.service import get_orchestrator

    orchestrator = get_orchestrator()

    if args.command == "pdfs":
        for name in orchestrator.text_source.list_documents():
            print(name)
        return 0
    if args.command == "status":
        print(json.dumps(orchestrator.get_statistics(), indent=2))
        return 0
    if args.command == "clear":
        try:
            await orchestrator.clear_state()
        except ConfigurationError as e:
            log.error("%s", e)
            return 2
        print("Extraction state cleared")
        return 0

    try:
        if args.command == "start":
            options = ExtractionOptions(
                start_page=args.start_page,
                max_pages=args.max_pages,
                overwrite=args.overwrite,
                model=args.model,
            )
            result = await orchestrator.start_extraction(args.document, options)
        else:
            result = await orchestrator.continue_extraction()
    except ConfigurationError as e:
        log.error("%s", e)
        return 2

    print(f"{result.message}: {result.job_id} (pages {result.start_page}-{result.end_page})")
    _install_stop_handler(orchestrator)
    await orchestrator.wait()

    state = orchestrator.get_status()
    print(json.dumps(state.statistics(), indent=2))
    return 1 if state.status == JobStatus.FAILED else 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    _setup_logging(verbose=args.verbose, log_file=args.log_file)
    _prepare_database()
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        log.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
