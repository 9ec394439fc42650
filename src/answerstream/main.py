"""
answerstream Command Line
=========================

Ask the answer service a question and watch the answer being typed.

Usage:
    answerstream "Why is the sky blue?"
    answerstream --conciseness long --interactive "How do vaccines work?"
    answerstream --url http://localhost:8000 --no-typing "What is entropy?"

In interactive mode the follow-up options are numbered after each answer;
enter a number to ask one, "s" to shuffle the options, any other text to
ask a new question with the conversation so far, or an empty line to quit.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from answerstream import __version__
from answerstream.config import Settings, get_settings, load_config, setup_logging
from answerstream.models.request import Conciseness
from answerstream.session import ConsoleRenderer, LifecyclePhase, QuerySession
from answerstream.stream import HttpxTransport


logger = logging.getLogger(__name__)


SHUFFLE_COMMAND = "s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="answerstream",
        description="Stream an answer and reveal it at a typing pace.",
    )
    parser.add_argument("question", help="Question to ask")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--url", default=None, help="Base URL of the answer service")
    parser.add_argument(
        "--conciseness",
        choices=[c.value for c in Conciseness],
        default=None,
        help="Requested answer length",
    )
    parser.add_argument(
        "--no-typing",
        action="store_true",
        help="Show text as soon as it arrives",
    )
    parser.add_argument(
        "--interactive",
        action="store_true",
        help="Offer follow-up questions after each answer",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _apply_args(settings: Settings, args: argparse.Namespace) -> Settings:
    if args.url:
        settings.endpoint.base_url = args.url
    if args.conciseness:
        settings.endpoint.conciseness = Conciseness(args.conciseness)
    if args.no_typing:
        settings.pacing.enabled = False
    return settings


async def _next_question(session: QuerySession) -> Optional[str]:
    line = await asyncio.to_thread(input, "\n> ")
    line = line.strip()
    if not line:
        return None
    if line.isdigit() and 1 <= int(line) <= len(session.options):
        return session.options[int(line) - 1]
    return line


async def run(settings: Settings, question: str, interactive: bool = False) -> int:
    """
    Ask ``question`` and, in interactive mode, any follow-ups.

    Returns:
        Process exit code: 0 if the last query completed, 1 otherwise
    """
    async with HttpxTransport(connect_timeout=settings.transport.connect_timeout_seconds) as transport:
        session = QuerySession(
            transport,
            ConsoleRenderer(),
            url=settings.endpoint.url,
            policy=settings.transport.retry_policy(),
            delay_factory=settings.pacing.delay_strategy,
            resync_threshold=settings.interpreter.resync_threshold,
            conciseness=settings.endpoint.conciseness,
            shuffle_url=settings.endpoint.shuffle_url,
        )

        phase = await session.ask(question).wait()
        while interactive and phase is LifecyclePhase.DONE:
            follow_up = await _next_question(session)
            if follow_up is None:
                break
            if follow_up.lower() == SHUFFLE_COMMAND:
                await session.shuffle_options()
                continue
            if follow_up in session.options:
                query = session.select_option(follow_up)
            else:
                query = session.ask(follow_up, include_history=True, is_follow_up=True)
            phase = await query.wait()

        session.cancel()
        return 0 if phase is LifecyclePhase.DONE else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.config:
        settings = load_config(args.config)
    else:
        # Cached settings are shared; CLI flags must not leak into them
        settings = get_settings().model_copy(deep=True)
    settings = _apply_args(settings, args)
    setup_logging(settings)

    try:
        return asyncio.run(run(settings, args.question, interactive=args.interactive))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
