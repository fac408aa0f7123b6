"""
Docent - Command-line Question Answering
=========================================
Asks questions against an already-populated index (run
``setup_db`` first).

Usage:
    python -m docent.scripts.ask "Who painted Water Lilies?"   # one-shot
    python -m docent.scripts.ask                               # interactive, 'exit' quits
    python -m docent.scripts.ask -q "Who painted Water Lilies?" # answers only, no info logs
"""

from __future__ import annotations

import argparse
import logging
import sys

from docent.src.core.models import RagResponse
from docent.src.core.rag_engine import AnswerController
from docent.src.database.vector_store import VectorIndex
from docent.src.utils.logger import get_logger, set_level

logger = get_logger(__name__)

_EXIT_WORDS = {"exit", "quit"}


def _print_response(response: RagResponse) -> None:
    print()
    print(response.answer)
    if response.sources:
        print()
        print("Sources:")
        for i, citation in enumerate(response.sources, 1):
            print(f"  [{i}] {citation.source}")
    print()


def _ask(controller: AnswerController, question: str) -> int:
    try:
        _print_response(controller.answer(question))
    except ValueError as exc:
        print(f"[!] {exc}")
        return 1
    return 0


def _interactive(controller: AnswerController) -> int:
    print("Docent ready. Type 'exit' to quit.")
    while True:
        try:
            question = input("\n❓ Question: ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return 0
        if question.lower() in _EXIT_WORDS:
            return 0
        if question:
            _ask(controller, question)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="ask", description="Ask Docent a question about the indexed documents.")
    parser.add_argument("question", nargs="*", help="Question to answer. Starts an interactive session when omitted.")
    parser.add_argument("-q", "--quiet", action="store_true", default=False, help="Only log warnings and errors.")
    args = parser.parse_args(argv)

    if args.quiet:
        set_level(logging.WARNING)

    controller = AnswerController(VectorIndex())
    try:
        controller.initialize()
    except Exception:
        logger.exception("Failed to initialise the answer pipeline.")
        return 1

    try:
        if args.question:
            return _ask(controller, " ".join(args.question))
        return _interactive(controller)
    finally:
        controller.cleanup()


if __name__ == "__main__":
    sys.exit(main())
