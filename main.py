"""Command-line entry point for chatting with a RAGChat knowledge base."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from ragchat import RAGError, RAGPipeline, UnknownSessionError, new_session_id
from ragchat.config import config

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from logging import Logger

    from ragchat import Turn

COMMANDS_HELP = ":clear  :history  :stats  :reset  :quit"
MAX_SOURCE_PREVIEW_LENGTH = 120


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="Ask questions about your documents from the terminal.",
    )
    parser.add_argument(
        "--doc",
        dest="documents",
        type=Path,
        action="append",
        default=[],
        help="Document to ingest before chatting (repeatable).",
    )
    parser.add_argument(
        "--session",
        default=None,
        help="Session id to use (default: a new random id).",
    )
    parser.add_argument(
        "--no-rag",
        dest="use_rag",
        action="store_false",
        help="Answer without retrieving document context.",
    )
    parser.add_argument(
        "--backend",
        choices=("faiss", "numpy"),
        default=None,
        help="Vector index backend (default: VECTOR_BACKEND or faiss).",
    )
    parser.set_defaults(use_rag=True)
    return parser.parse_args(argv)


def format_answer(turn: Turn) -> str:
    """Render an assistant turn and its sources for the terminal."""  # noqa: DOC201
    lines = [turn.content]
    if turn.citations:
        lines.append("")
        lines.append("Sources:")
        for i, citation in enumerate(turn.citations, start=1):
            page = f" p.{citation.page_number}" if citation.page_number else ""
            preview = " ".join(citation.text.split())[:MAX_SOURCE_PREVIEW_LENGTH]
            lines.append(
                f"  [{i}] {citation.filename}{page} "
                f"({citation.relevance_score:.2f}) {preview}"
            )
    return "\n".join(lines)


def ingest_documents(
    pipeline: RAGPipeline, paths: Iterable[Path], logger: Logger
) -> int:
    """Ingest each path, logging failures; return the number of failures."""  # noqa: DOC201
    failures = 0
    for path in paths:
        try:
            document = pipeline.ingest_file(path)
        except (OSError, RAGError):
            logger.exception("Could not ingest %s", path)
            failures += 1
        else:
            print(f"Ingested {document.filename}: {document.chunk_count} chunks")  # noqa: T201
    return failures


def handle_command(
    pipeline: RAGPipeline, command: str, session_id: str, out: TextIO
) -> bool:
    """Run a ':' command; return False when the loop should stop."""  # noqa: DOC201
    if command == ":quit":
        return False
    if command == ":clear":
        pipeline.clear_session(session_id)
        out.write("Conversation cleared.\n")
    elif command == ":history":
        try:
            turns = pipeline.get_transcript(session_id)
        except UnknownSessionError:
            out.write("No messages yet.\n")
        else:
            for turn in turns:
                out.write(f"{turn.role.value}: {turn.content}\n")
    elif command == ":stats":
        stats = pipeline.get_stats()
        out.write(
            f"documents={stats.document_count} chunks={stats.chunk_count} "
            f"sessions={stats.session_count}\n"
        )
    elif command == ":reset":
        pipeline.reset_knowledge_base()
        out.write("Knowledge base reset.\n")
    else:
        out.write(f"Unknown command. Available: {COMMANDS_HELP}\n")
    return True


def chat_loop(  # noqa: PLR0913
    pipeline: RAGPipeline,
    session_id: str,
    *,
    use_rag: bool,
    logger: Logger,
    lines: Iterable[str],
    out: TextIO,
) -> None:
    """Answer each input line until ':quit' or end of input."""
    for raw_line in lines:
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith(":"):
            if not handle_command(pipeline, line, session_id, out):
                return
            continue
        try:
            turn = pipeline.answer(line, session_id, use_rag)
        except RAGError as exc:
            logger.error("Request failed (%s): %s", exc.kind, exc)  # noqa: TRY400
            out.write(f"Sorry, I could not answer that ({exc.kind}).\n")
        else:
            out.write(format_answer(turn) + "\n")


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration, ingest documents and start the chat loop."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    pipeline = RAGPipeline(vector_backend=args.backend)
    failures = ingest_documents(pipeline, args.documents, logger)
    session_id = args.session or new_session_id()

    logger.info("Starting chat session %s (rag=%s)", session_id, args.use_rag)
    print(f"Ask a question, or use {COMMANDS_HELP}")  # noqa: T201
    try:
        chat_loop(
            pipeline,
            session_id,
            use_rag=args.use_rag,
            logger=logger,
            lines=sys.stdin,
            out=sys.stdout,
        )
    except KeyboardInterrupt:
        logger.info("RAGChat stopped by user")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
