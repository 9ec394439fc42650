"""
Pacer
=====

Reveals a query's accumulated text one character at a time, on its own
clock, independent of when the network delivers it.

Two cursors move over the same text:
    network cursor  len(stream.accumulated_text), grows in bursts
    display cursor  display.displayed_length, grows one char per tick

Loop:
    1. Behind the network cursor: wait the strategy's delay, reveal one
       character, repeat.
    2. Caught up, network still open: park until notify().
    3. Caught up, network finished: reconcile the final text and stop.

Design Rules:
    - One task per pacer; start() never creates a second ticker
    - Writes only DisplayState; reads StreamState
    - Resumes from the current position, never from scratch
    - Rewinds to the unchanged prefix when a retry replaces the text
    - stop() is idempotent and clears any pending tick

Example:
    pacer = Pacer(stream, display, delay=FixedDelay(0), on_done=print)
    pacer.start()
    interpreter.apply(TextDeltaEvent(content="Hi"))
    pacer.notify()
"""

import asyncio
import logging
from typing import Callable, Optional

from answerstream.models.state import DisplayState, StreamState
from answerstream.pacing.delays import DelayStrategy, HumanTypingDelay


logger = logging.getLogger(__name__)


ProgressCallback = Callable[[str], None]
DoneCallback = Callable[[str], None]


class Pacer:
    """
    Human-paced reveal of one query's text.

    Attributes:
        stream: StreamState being revealed (read only)
        display: DisplayState being advanced (owned)
        delay: Per-character delay strategy
        ticks: Characters revealed so far
    """

    def __init__(
        self,
        stream: StreamState,
        display: DisplayState,
        delay: Optional[DelayStrategy] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_done: Optional[DoneCallback] = None,
    ) -> None:
        """
        Initialize pacer.

        Args:
            stream: Query's StreamState
            display: Query's DisplayState
            delay: Delay strategy (HumanTypingDelay if None)
            on_progress: Called with the visible text after every tick
            on_done: Called once with the reconciled final text
        """
        self.stream = stream
        self.display = display
        self.delay = delay or HumanTypingDelay()
        self.ticks: int = 0

        self._on_progress = on_progress
        self._on_done = on_done
        self._wake: asyncio.Event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._stopped: bool = False

    @property
    def running(self) -> bool:
        """Whether the pacer task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def done(self) -> bool:
        """Whether the final text has been reconciled."""
        return self.display.done

    def start(self) -> Optional[asyncio.Task]:
        """
        Start ticking.

        Returns the existing task if already running. A stopped or finished
        pacer is not restarted.
        """
        if self._stopped or self.display.done:
            return self._task
        if self._task is None:
            self._task = asyncio.create_task(self._run())
        return self._task

    def notify(self) -> None:
        """Wake a parked pacer after new text or a network status change."""
        self._wake.set()

    def stop(self) -> None:
        """Cancel the pending tick. Safe to call repeatedly."""
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_done(self) -> None:
        """Wait until the pacer reconciles or is stopped."""
        if self._task is None:
            return
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        stream, display = self.stream, self.display

        while True:
            if display.sync(stream):
                logger.debug(f"Text replaced, display rewound to {display.displayed_length} chars")
                if self._on_progress is not None:
                    self._on_progress(display.visible_text(stream))

            position = display.displayed_length
            if position < stream.length:
                text = stream.accumulated_text
                previous_char = text[position - 1] if position > 0 else ""
                await asyncio.sleep(max(0.0, self.delay(text[position], previous_char)))

                if display.advance(stream):
                    self.ticks += 1
                    if self._on_progress is not None:
                        self._on_progress(display.visible_text(stream))
                continue

            if stream.network_finished:
                self._reconcile()
                return

            self._wake.clear()
            await self._wake.wait()

    def _reconcile(self) -> None:
        stream, display = self.stream, self.display
        final_text = stream.authoritative_text()

        if final_text != stream.accumulated_text:
            logger.debug(
                f"Final answer differs from streamed text "
                f"({len(final_text)} vs {stream.length} chars), using final answer"
            )

        display.displayed_length = stream.length
        display.final_text = final_text
        display.done = True
        logger.debug(f"Typewriter done after {self.ticks} ticks")

        if self._on_done is not None:
            self._on_done(final_text)
