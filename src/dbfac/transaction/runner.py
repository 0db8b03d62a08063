from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from dbfac.base.interface import BaseInterface
from dbfac.exception import DbFacError
from dbfac.hydrator import Hydrator

from .context import TransactionContext
from .interfaces import TransactionError, TransactionStage, TransactionState

logger = logging.getLogger(__name__)

T = TypeVar("T")
Work = Callable[[TransactionContext], Awaitable[T]]
Done = Callable[..., None]
CallbackWork = Callable[[TransactionContext, Done], Any]
Callback = Callable[[Optional[TransactionError]], Any]


class TransactionRunner:
    """Runs one unit of work inside a transaction on a borrowed connection.

    The flow is acquire, begin, execute, commit and release. When the work
    or the commit fails, the transaction is rolled back and the connection
    released. When the rollback fails too, the connection is destroyed so
    that a poisoned session never goes back to the pool. The caller always
    receives the first failure, wrapped in a `TransactionError`.

    Nested transactions are not supported: do not call the runner from
    inside a unit of work on the same connection. A runner instance may run
    several transactions concurrently since each one borrows its own
    connection, but a `TransactionContext` belongs to a single task.
    """

    def __init__(
        self, pool: BaseInterface, hydrator: Optional[Hydrator] = None
    ) -> None:
        self._pool = pool
        self._hydrator = hydrator

    @property
    def pool(self) -> BaseInterface:
        return self._pool

    async def run(self, work: Work[T]) -> T:
        """Run `work` inside a transaction and return its result.

        Args:
            work (Callable[[TransactionContext], Awaitable[T]]): The unit of
                work. Raising from it rolls the transaction back.

        Raises:
            TransactionError: If any stage failed. `original_error` holds
                the first failure and `tx_state` tells how far it got.

        Returns:
            T: Whatever `work` returned
        """
        state = TransactionState()

        try:
            conn = await self._pool.acquire()
        except Exception as e:
            raise TransactionError(e, state, TransactionStage.ACQUIRE) from e

        try:
            await conn.begin()
        except BaseException as e:
            # The session state is unknown after a failed BEGIN
            await self._destroy(conn)
            if not isinstance(e, Exception):
                raise
            raise TransactionError(e, state, TransactionStage.BEGIN) from e

        stage = TransactionStage.EXECUTE
        state = state.mark_started()
        logger.debug("Transaction started on connection %s", id(conn))
        try:
            result = await work(TransactionContext(conn, self._hydrator))
            stage = TransactionStage.COMMIT
            await conn.commit()
            state = state.mark_committed()
        except Exception as e:
            state = await self._revert(conn, state)
            raise TransactionError(e, state, stage) from e
        except BaseException:
            # Cancelled: same cleanup, the cancellation itself propagates
            await self._revert(conn, state)
            raise

        try:
            await self._pool.release(conn)
        except BaseException as e:
            logger.error("Release after commit failed: %s", e)
            await self._destroy(conn)
            if not isinstance(e, Exception):
                raise
            raise TransactionError(e, state, TransactionStage.RELEASE) from e

        logger.debug("Transaction committed on connection %s", id(conn))
        return result

    def run_with_callback(
        self, work: CallbackWork, callback: Callback
    ) -> asyncio.Task:
        """Callback flavour of `run`.

        `work(ctx, done)` must call `done()` on success or `done(err)` on
        failure, exactly once. `callback(err)` then receives `None` or the
        `TransactionError`. Must be called from a running event loop.

        When the returned task is cancelled the transaction is cleaned up
        as usual but `callback` is not called; the task ends cancelled.
        An exception raised by `callback` is not caught and ends the task,
        so await the task to observe it.

        Returns:
            asyncio.Task: The task driving the transaction
        """

        async def _work(ctx: TransactionContext) -> None:
            finished = asyncio.get_running_loop().create_future()

            def done(err: Any = None) -> None:
                if finished.done():
                    logger.warning("Transaction work signalled done twice")
                    return
                if err is None:
                    finished.set_result(None)
                elif isinstance(err, BaseException):
                    finished.set_exception(err)
                else:
                    finished.set_exception(DbFacError(str(err)))

            work(ctx, done)
            await finished

        async def _run() -> None:
            try:
                await self.run(_work)
            except TransactionError as e:
                callback(e)
            else:
                callback(None)

        return asyncio.get_running_loop().create_task(_run())

    async def _revert(
        self, conn: Any, state: TransactionState
    ) -> TransactionState:
        try:
            await conn.rollback()
        except BaseException as rollback_error:
            logger.error(
                "Rollback failed, destroying connection %s: %s",
                id(conn),
                rollback_error,
            )
            await self._destroy(conn)
            if not isinstance(rollback_error, Exception):
                raise
            return state

        state = state.mark_reverted()
        logger.debug("Transaction rolled back on connection %s", id(conn))
        try:
            await self._pool.release(conn)
        except BaseException as release_error:
            logger.error("Release after rollback failed: %s", release_error)
            await self._destroy(conn)
            if not isinstance(release_error, Exception):
                raise
        return state

    async def _destroy(self, conn: Any) -> None:
        try:
            await self._pool.destroy(conn)
        except Exception as destroy_error:
            logger.error(
                "Destroy of connection %s failed: %s", id(conn), destroy_error
            )
