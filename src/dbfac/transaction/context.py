from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional

from dbfac.convert import Params
from dbfac.sql.mysql.executor import MysqlExecutor

QueryCallback = Callable[[Optional[BaseException], Optional[List[Any]]], Any]


class TransactionContext(MysqlExecutor):
    """Handle given to transactional work.

    Every statement runs on the connection borrowed for the transaction.
    The handle must not be used once the work has finished, nor shared with
    another transaction.
    """

    def submit(
        self,
        sql: str,
        params: Params = None,
        callback: Optional[QueryCallback] = None,
    ) -> asyncio.Task:
        """Schedule `query` and report through `callback(err, rows)`.

        Intended for callback style work passed to `run_transaction`.
        """

        async def _run():
            try:
                rows = await self.query(sql, params)
            except Exception as e:
                if callback is None:
                    raise
                callback(e, None)
                return None
            if callback is not None:
                callback(None, rows)
            return rows

        return asyncio.get_running_loop().create_task(_run())
