"""
Query Session
=============

Runs questions against the answer endpoint, one at a time.

A session owns the conversation (history, follow-up entries, conciseness)
and at most one ActiveQuery. Starting a query supersedes the previous one:
its retrier is cancelled, its pacer stopped, and any late callback from it
is ignored.

Wiring per query:
    TransportRetrier ─▶ EventInterpreter ─▶ StreamState
                                              │ (read)
    Pacer ─▶ DisplayState ─▶ Renderer ◀───────┘

Lifecycle signals from both workers go through LifecyclePolicy.evaluate(),
a pure function; the effects it returns are executed here, in one place.

Example:
    session = QuerySession(HttpxTransport(), ConsoleRenderer(), url=API_URL)
    query = session.ask("Why is the sky blue?")
    await query.wait()
    print(session.result, session.options)
"""

import asyncio
import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from answerstream.models.events import CompleteEvent, StreamEvent, TextDeltaEvent
from answerstream.models.faults import (
    CancellationFault,
    RetriesExhausted,
    StreamFault,
    user_message,
)
from answerstream.models.request import (
    ChatMessage,
    Conciseness,
    HistoryEntry,
    QueryRequest,
    ShuffleRequest,
    ShuffleResponse,
)
from answerstream.models.state import DisplayState, QueryStatus, StreamState
from answerstream.pacing.delays import DelayStrategy, HumanTypingDelay
from answerstream.pacing.pacer import Pacer
from answerstream.session.lifecycle import Effect, LifecyclePolicy, LifecycleSignal
from answerstream.session.query import ActiveQuery
from answerstream.session.renderer import Renderer
from answerstream.stream.interpreter import DEFAULT_RESYNC_THRESHOLD
from answerstream.stream.retrier import RetryPolicy, TransportRetrier
from answerstream.stream.transport import Transport


logger = logging.getLogger(__name__)


DelayFactory = Callable[[], DelayStrategy]


class QuerySession:
    """
    One user's conversation with the answer endpoint.

    Attributes:
        transport: Transport shared by every query
        renderer: Receives progressive and final text
        url: Answer endpoint
        shuffle_url: Follow-up shuffle endpoint, None to disable shuffling
        policy: Retry policy for each query
        conciseness: Requested answer length
        conversation_history: Completed user/assistant turns
        history_entries: Earlier queries kept when asking follow-ups
        current_query: Question of the active (or last) query
        result: Final answer text, or an ``Error: ...`` message
        options: Follow-up options of the last completed query
        concepts: Highlightable concepts of the last completed query
        is_loading: Whether a query is in progress
    """

    def __init__(
        self,
        transport: Transport,
        renderer: Renderer,
        url: str,
        policy: Optional[RetryPolicy] = None,
        delay_factory: Optional[DelayFactory] = None,
        resync_threshold: int = DEFAULT_RESYNC_THRESHOLD,
        conciseness: Conciseness = Conciseness.SHORT,
        shuffle_url: Optional[str] = None,
    ) -> None:
        """
        Initialize session.

        Args:
            transport: Transport used for every query
            renderer: Renderer collaborator
            url: Answer endpoint URL
            policy: Retry policy (defaults if None)
            delay_factory: Builds a delay strategy per query
                (HumanTypingDelay if None)
            resync_threshold: Complete-answer resync threshold in characters
            conciseness: Initial answer length preference
            shuffle_url: Endpoint that returns replacement follow-up options
        """
        self.transport = transport
        self.renderer = renderer
        self.url = url
        self.policy = policy or RetryPolicy()
        self.delay_factory = delay_factory or HumanTypingDelay
        self.resync_threshold = resync_threshold
        self.conciseness = conciseness
        self.shuffle_url = shuffle_url

        self.conversation_history: List[ChatMessage] = []
        self.history_entries: List[HistoryEntry] = []
        self.current_query: str = ""
        self.result: str = ""
        self.options: List[str] = []
        self.concepts: List[str] = []
        self.is_loading: bool = False

        self._lifecycle = LifecyclePolicy()
        self._active: Optional[ActiveQuery] = None
        self._next_id: int = 0
        self._shuffle_id: int = 0

    @property
    def active(self) -> Optional[ActiveQuery]:
        """Handle of the current query, if any."""
        return self._active

    # =========================================================================
    # Public API
    # =========================================================================

    def ask(
        self,
        message: str,
        include_history: bool = False,
        is_follow_up: bool = False,
    ) -> ActiveQuery:
        """
        Start a query, superseding any query in progress.

        Must be called from a running event loop.

        Args:
            message: Question text
            include_history: Send the conversation so far with the request
            is_follow_up: Record the current answer as a history entry first

        Returns:
            Handle of the new query; await ``handle.wait()`` to settle
        """
        request = QueryRequest(
            message=message,
            conversation_history=list(self.conversation_history) if include_history else [],
            conciseness=self.conciseness,
        )

        if is_follow_up and self.result and self.current_query:
            self.history_entries.append(
                HistoryEntry(
                    query_text=self.current_query,
                    response_text=self.result,
                    suggested_followups=list(self.options),
                    explorable_concepts=list(self.concepts),
                    conversation_history_index=len(self.conversation_history),
                )
            )

        self._supersede()
        query = self._create_query(request)
        self._active = query

        self.current_query = message
        self.result = ""
        self.options = []
        self.concepts = []
        self.is_loading = True
        self.renderer.render_reset()

        logger.info(
            f"Starting query {query.query_id} "
            f"(history={len(request.conversation_history)}, "
            f"conciseness={request.conciseness.value})"
        )
        self._signal(query, LifecycleSignal.START)
        query.task = asyncio.create_task(self._run_network(query))
        return query

    def select_option(self, option: str) -> ActiveQuery:
        """Ask a suggested follow-up question."""
        return self.ask(option, include_history=True, is_follow_up=True)

    def select_concept(self, concept: str) -> ActiveQuery:
        """Explore a highlighted concept from the current answer."""
        return self.ask(concept, include_history=True, is_follow_up=True)

    async def shuffle_options(self) -> bool:
        """
        Replace the follow-up options with a fresh set from the server.

        A failed request is logged and leaves the current options alone.
        A newer shuffle, or a query started while this one is in flight,
        makes its result stale and it is dropped.

        Returns:
            True if the options were replaced
        """
        if not self.shuffle_url:
            raise RuntimeError("No shuffle endpoint configured")

        self._shuffle_id += 1
        shuffle_id, query_id = self._shuffle_id, self._next_id
        request = ShuffleRequest(
            conversation_history=list(self.conversation_history),
            current_topic=self.current_query,
        )

        def is_current() -> bool:
            return shuffle_id == self._shuffle_id and query_id == self._next_id

        self.is_loading = True
        try:
            payload = await self.transport.fetch_json("POST", self.shuffle_url, request.to_body())
            response = ShuffleResponse.model_validate(payload or {})
        except (StreamFault, ValidationError) as e:
            logger.error(f"Error shuffling questions: {e}")
            return False
        finally:
            if is_current():
                self.is_loading = False

        if not is_current():
            logger.debug("Dropping stale shuffle result")
            return False

        self.options = response.options
        logger.info(f"Shuffled follow-up options ({len(self.options)} received)")
        self.renderer.render_options(self.options)
        return True

    def cancel(self) -> None:
        """Cancel the query in progress, if any. Idempotent."""
        if self._active is not None:
            self._active.cancel()
        self.is_loading = False

    def load_history_entry(self, entry: HistoryEntry) -> None:
        """
        Show an earlier answer instantly.

        Cancels any query in progress. Nothing is streamed or typed.
        """
        self._supersede()
        self._active = None
        self.current_query = entry.query_text
        self.result = entry.response_text
        self.options = list(entry.suggested_followups)
        self.concepts = list(entry.explorable_concepts)
        self.is_loading = False
        self.renderer.render_reset()
        self.renderer.render_final(self.result, self.options, self.concepts)

    def reset_all(self) -> None:
        """Forget everything except the conciseness preference."""
        self._supersede()
        self._active = None
        self.conversation_history = []
        self.history_entries = []
        self.current_query = ""
        self.result = ""
        self.options = []
        self.concepts = []
        self.is_loading = False
        self.renderer.render_reset()

    # =========================================================================
    # Query wiring
    # =========================================================================

    def _create_query(self, request: QueryRequest) -> ActiveQuery:
        self._next_id += 1
        stream = StreamState()
        display = DisplayState()
        retrier = TransportRetrier(
            self.transport,
            policy=self.policy,
            resync_threshold=self.resync_threshold,
        )
        pacer = Pacer(
            stream,
            display,
            delay=self.delay_factory(),
            on_progress=lambda text: self._on_progress(query, text),
            on_done=lambda text: self._signal(query, LifecycleSignal.CAUGHT_UP),
        )
        query = ActiveQuery(self._next_id, request, stream, display, retrier, pacer)
        return query

    def _supersede(self) -> None:
        previous = self._active
        if previous is not None and not previous.finished:
            logger.info(f"Superseding query {previous.query_id}")
        if previous is not None:
            previous.cancel()

    async def _run_network(self, query: ActiveQuery) -> None:
        try:
            await query.retrier.run(
                query.stream,
                "POST",
                self.url,
                query.request.to_body(),
                on_event=lambda event: self._on_event(query, event),
                on_attempt=lambda attempt: self._on_attempt(query, attempt),
            )
        except CancellationFault:
            logger.info(f"Query {query.query_id} aborted")
            return
        except RetriesExhausted as e:
            query.fault = e.fault
            query.stream.status = QueryStatus.FAILED
            self._signal(query, LifecycleSignal.FAILED)
            return

        self._signal(query, LifecycleSignal.NETWORK_FINISHED)

    def _on_attempt(self, query: ActiveQuery, attempt: int) -> None:
        if attempt > 1:
            self._signal(query, LifecycleSignal.RETRY)

    def _on_event(self, query: ActiveQuery, event: StreamEvent) -> None:
        if isinstance(event, (TextDeltaEvent, CompleteEvent)):
            self._signal(query, LifecycleSignal.TEXT)
        if query.stream.network_finished:
            self._signal(query, LifecycleSignal.NETWORK_FINISHED)

    def _on_progress(self, query: ActiveQuery, text: str) -> None:
        if query is self._active:
            self.renderer.render_progress(text, True)

    def _signal(self, query: ActiveQuery, signal: LifecycleSignal) -> None:
        if query is not self._active or query.superseded:
            logger.debug(f"Dropping {signal.value} from superseded query {query.query_id}")
            return

        result = self._lifecycle.evaluate(query.phase, signal)
        query.phase = result.phase
        if result.transition_occurred:
            logger.debug(f"Query {query.query_id}: {result!r}")
        for effect in result.effects:
            self._execute(query, effect)

    # =========================================================================
    # Effect executor
    # =========================================================================

    def _execute(self, query: ActiveQuery, effect: Effect) -> None:
        stream, display = query.stream, query.display

        if effect is Effect.MARK_CONNECTING:
            stream.status = QueryStatus.CONNECTING

        elif effect is Effect.START_PACER:
            query.pacer.start()

        elif effect is Effect.WAKE_PACER:
            query.pacer.notify()

        elif effect is Effect.STOP_PACER:
            query.pacer.stop()

        elif effect is Effect.RENDER_FINAL:
            stream.status = QueryStatus.COMPLETE
            self.result = display.visible_text(stream)
            self.options = list(stream.sidecar.options)
            self.concepts = list(stream.sidecar.concepts)
            self.is_loading = False
            logger.info(
                f"Query {query.query_id} complete: {len(self.result)} chars, "
                f"{len(self.options)} options"
            )
            self.renderer.render_final(self.result, self.options, self.concepts)

        elif effect is Effect.RECORD_CONVERSATION:
            if self.result:
                self.conversation_history.extend(
                    [
                        ChatMessage(role="user", content=query.message),
                        ChatMessage(role="assistant", content=self.result),
                    ]
                )

        elif effect is Effect.CLEAR_SIDECAR:
            self.options = []
            self.concepts = []

        elif effect is Effect.RENDER_ERROR:
            self.result = f"Error: {user_message(query.fault)}"
            self.is_loading = False
            self.renderer.render_error(self.result)
