from __future__ import annotations

import logging
from inspect import isawaitable
from typing import Any, Dict, Optional

from asyncmy import Connection, create_pool

from dbfac.base.interface import BaseInterface
from dbfac.exception import DbFacError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "+00:00"


class MysqlPool(BaseInterface):
    """Interface for connecting to a MySQL database"""

    scheme = "mysql"
    default_port = 3306

    def __init__(
        self,
        dsn: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        db: Optional[str] = None,
        label: str = "generic",
        min_size: int = 1,
        max_size: int = 100,
        timezone: str = DEFAULT_TIMEZONE,
        charset: str = "utf8mb4",
    ) -> None:
        self._timezone = timezone
        self._charset = charset
        self._pool: Any = None
        super().__init__(
            dsn=dsn,
            host=host,
            port=port,
            user=user,
            password=password,
            db=db,
            label=label,
            min_size=min_size,
            max_size=max_size,
        )

    def _setup_pool(self):
        self._pool_kwargs: Dict[str, Any] = dict(
            minsize=self.min_size,
            maxsize=self.max_size,
            user=self.user,
            password=self.password or "",
            host=self.host,
            port=self.port,
            db=self.db,
            charset=self._charset,
            autocommit=True,
            init_command=f"SET time_zone = '{self._timezone}'",
        )

    @property
    def pool(self) -> Any:
        if self._pool is None:
            raise DbFacError(f"{self} has not been opened")
        return self._pool

    async def open(self):
        """Open connections to the pool"""
        if self._pool is not None:
            raise DbFacError(f"{self} is already open")
        logger.info("Opening %s", self)
        self._pool = await create_pool(**self._pool_kwargs)

    async def close(self):
        """Close connections to the pool"""
        pool = self.pool
        logger.info("Closing %s", self)
        self._pool = None
        pool.close()
        await pool.wait_closed()

    async def acquire(self) -> Connection:
        """Borrow a connection from the pool"""
        try:
            conn = await self.pool.acquire()
        except Exception as e:
            logger.warning(
                "[%s] could not acquire connection: %s", self.label, e
            )
            raise
        logger.debug("[%s] acquired connection %s", self.label, id(conn))
        return conn

    async def release(self, conn: Connection) -> None:
        """Give a healthy connection back for reuse"""
        result = self.pool.release(conn)
        if isawaitable(result):
            await result
        logger.debug("[%s] released connection %s", self.label, id(conn))

    async def destroy(self, conn: Connection) -> None:
        """Close a connection and drop it from the pool"""
        closing = conn.close()
        if isawaitable(closing):
            await closing
        # A closed connection is not put back on the free list
        result = self.pool.release(conn)
        if isawaitable(result):
            await result
        logger.debug("[%s] destroyed connection %s", self.label, id(conn))

    @property
    def active_count(self) -> int:
        if self._pool is None:
            return 0
        return self._pool.size - self._pool.freesize
