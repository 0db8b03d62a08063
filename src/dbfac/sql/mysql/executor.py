from __future__ import annotations

import logging
from typing import Any, List, Optional, Type

from asyncmy import Connection
from asyncmy.cursors import DictCursor

from dbfac.convert import Params, convert_sql_params, prepare_params
from dbfac.hydrator import Hydrator

logger = logging.getLogger(__name__)


class MysqlExecutor:
    """Runs statements on one borrowed MySQL connection"""

    def __init__(
        self, conn: Connection, hydrator: Optional[Hydrator] = None
    ) -> None:
        self._conn = conn
        self._hydrator = hydrator or Hydrator()

    @property
    def connection(self) -> Connection:
        return self._conn

    async def query(
        self,
        sql: str,
        params: Params = None,
        model: Optional[Type[object]] = None,
    ) -> List[Any]:
        """Run a statement and return every row it produced.

        Args:
            sql (str): The statement. `?` and `:name` placeholders are
                converted to the driver style.
            params (Union[Sequence[Any], Dict[str, Any]], optional):
                Statement parameters. Defaults to `None`.
            model (Type[object], optional): Model used to hydrate each row.
                Rows are returned as dicts when omitted. Defaults to `None`.

        Returns:
            List[Any]: The rows, empty if the statement returns no result set
        """
        raw = await self._run_sql(sql, params, no_result=False)
        return self._hydrator._make(model)(list(raw or []))

    async def execute(self, sql: str, params: Params = None) -> int:
        """Run a statement and return the number of affected rows"""
        return await self._run_sql(sql, params, no_result=True)

    async def _run_sql(self, sql: str, params: Params, no_result: bool):
        query = convert_sql_params(sql)
        logger.debug("Executing %s", query)
        async with self._conn.cursor(cursor=DictCursor) as cursor:
            await cursor.execute(query, prepare_params(params))
            if no_result:
                return cursor.rowcount
            if cursor.description is None:
                return []
            return await cursor.fetchall()
