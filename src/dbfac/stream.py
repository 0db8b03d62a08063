from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Type

from asyncmy.cursors import SSDictCursor

from dbfac.base.interface import BaseInterface
from dbfac.convert import Params, convert_sql_params, prepare_params
from dbfac.hydrator import Hydrator

logger = logging.getLogger(__name__)


class StreamState(Enum):
    """Lifecycle of a query stream"""

    PENDING = "pending"  # Created, query not sent yet
    PAUSED = "paused"  # Query open, waiting for the consumer
    FETCHING = "fetching"  # A row is being read from the server
    DONE = "done"  # Result set exhausted
    FAILED = "failed"  # Driver reported an error
    CANCELLED = "cancelled"  # Closed by the consumer

    @property
    def terminal(self) -> bool:
        return self in (
            StreamState.DONE,
            StreamState.FAILED,
            StreamState.CANCELLED,
        )


class QueryStream:
    """Pull based iterator over the rows of one query.

    The query runs on its own connection through an unbuffered cursor, so
    the result set is never held in memory. Nothing is sent to the server
    until the first row is requested, and each `__anext__` call reads
    exactly one row: the server is never read ahead of the consumer.

    Example:

    ```python
    async with facility.query_stream("SELECT * FROM t") as rows:
        async for row in rows:
            ...
    ```

    A stream has a single consumer. Only one `__anext__` or `aclose` call
    may be pending at any time; overlapping calls are undefined behaviour.
    A stream cannot be restarted once it reached a terminal state.
    """

    def __init__(
        self,
        pool: BaseInterface,
        sql: str,
        params: Params = None,
        model: Optional[Type[object]] = None,
        hydrator: Optional[Hydrator] = None,
    ) -> None:
        self._pool = pool
        self._sql = convert_sql_params(sql)
        self._params = prepare_params(params)
        self._factory = (hydrator or Hydrator())._make(model)
        self._state = StreamState.PENDING
        self._conn: Any = None
        self._cursor: Any = None
        self._error: Optional[BaseException] = None
        self._closed = False

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        """The driver error or cancellation that ended the stream, if any"""
        return self._error

    @property
    def closed(self) -> bool:
        """Whether the connection has been given back to the pool"""
        return self._closed

    def __aiter__(self) -> QueryStream:
        return self

    async def __anext__(self) -> Any:
        if self._state.terminal:
            raise StopAsyncIteration

        if self._state is StreamState.PENDING:
            await self._open()

        self._state = StreamState.FETCHING
        try:
            row = await self._cursor.fetchone()
        except BaseException as e:
            await self._fail(e)
            raise

        if self._state is not StreamState.FETCHING:
            # Closed while the row was in flight; it is dropped
            raise StopAsyncIteration

        if row is None:
            self._state = StreamState.DONE
            await self._finish()
            raise StopAsyncIteration

        self._state = StreamState.PAUSED
        return self._factory(row)

    async def aclose(self) -> None:
        """Stop the query and give the connection back.

        Rows not read yet are discarded. Calling it on a finished stream
        does nothing.
        """
        if self._state.terminal:
            return
        self._state = StreamState.CANCELLED
        logger.debug("Stream cancelled by consumer")
        await self._finish()

    async def __aenter__(self) -> QueryStream:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def _open(self) -> None:
        try:
            self._conn = await self._pool.acquire()
        except BaseException as e:
            self._error = e
            self._state = StreamState.FAILED
            self._closed = True
            raise

        try:
            self._cursor = self._conn.cursor(SSDictCursor)
            logger.debug("Streaming %s", self._sql)
            await self._cursor.execute(self._sql, self._params)
        except BaseException as e:
            # A query interrupted mid flight leaves the session unusable
            await self._fail(e)
            raise
        self._state = StreamState.PAUSED

    async def _fail(self, error: BaseException) -> None:
        logger.debug("Stream failed: %r", error)
        self._error = error
        self._state = StreamState.FAILED
        await self._finish()

    async def _finish(self) -> None:
        if self._closed:
            return
        self._closed = True

        conn, cursor = self._conn, self._cursor
        self._conn = self._cursor = None
        if conn is None:
            return

        if self._state is StreamState.FAILED:
            await self._destroy(conn)
            return

        try:
            if cursor is not None:
                # Reads and discards what is left of an unbuffered result
                await cursor.close()
        except BaseException as e:
            logger.error("Closing stream cursor failed: %r", e)
            await self._destroy(conn)
            if not isinstance(e, Exception):
                raise
            return

        try:
            await self._pool.release(conn)
        except BaseException as e:
            logger.error("Release after stream failed: %r", e)
            await self._destroy(conn)
            if not isinstance(e, Exception):
                raise
            return
        logger.debug("Stream closed (%s)", self._state.value)

    async def _destroy(self, conn: Any) -> None:
        try:
            await self._pool.destroy(conn)
        except Exception as e:
            logger.error("Destroy after stream failed: %s", e)
