"""
Active Query
============

Handle for one in-flight query.

Everything that belongs to a single question lives here: its request, its
StreamState and DisplayState, the retrier reading the network, the pacer
revealing text, and the network task. A new query gets a new handle; the
old one is cancelled and never touched again.
"""

import asyncio
import logging
from typing import Optional

from answerstream.models.faults import StreamFault
from answerstream.models.request import QueryRequest
from answerstream.models.state import DisplayState, StreamState
from answerstream.pacing.pacer import Pacer
from answerstream.session.lifecycle import LifecyclePhase
from answerstream.stream.retrier import TransportRetrier


logger = logging.getLogger(__name__)


class ActiveQuery:
    """
    One query's state, workers and lifecycle phase.

    Attributes:
        query_id: Session-unique sequence number
        request: Request body being sent
        stream: Network-side state
        display: Display-side state
        retrier: Network worker
        pacer: Display worker
        phase: Current lifecycle phase
        fault: Last fault if the query failed
        superseded: Whether a newer query (or reset) cancelled this one
    """

    def __init__(
        self,
        query_id: int,
        request: QueryRequest,
        stream: StreamState,
        display: DisplayState,
        retrier: TransportRetrier,
        pacer: Pacer,
    ) -> None:
        self.query_id = query_id
        self.request = request
        self.stream = stream
        self.display = display
        self.retrier = retrier
        self.pacer = pacer
        self.phase: LifecyclePhase = LifecyclePhase.IDLE
        self.fault: Optional[StreamFault] = None
        self.superseded: bool = False
        self.task: Optional[asyncio.Task] = None

    @property
    def message(self) -> str:
        return self.request.message

    @property
    def finished(self) -> bool:
        """Whether the query reached DONE or FAILED."""
        return self.phase in (LifecyclePhase.DONE, LifecyclePhase.FAILED)

    def cancel(self) -> None:
        """
        Supersede this query.

        Cancels the retrier (releasing any open response) and stops the
        pacer. Idempotent.
        """
        if self.superseded:
            return
        self.superseded = True
        self.retrier.cancel()
        self.pacer.stop()
        logger.debug(f"Query {self.query_id} cancelled in phase {self.phase.value}")

    async def wait(self) -> LifecyclePhase:
        """
        Wait for the network task and the pacer to settle.

        Returns:
            Phase reached
        """
        if self.task is not None:
            await self.task
        await self.pacer.wait_done()
        return self.phase

    def __repr__(self) -> str:
        return (
            f"ActiveQuery(id={self.query_id}, phase={self.phase.value}, "
            f"received={self.stream.length}, shown={self.display.displayed_length})"
        )
