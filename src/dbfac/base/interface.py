from __future__ import annotations

from abc import ABC, abstractmethod
from collections import namedtuple
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from urllib.parse import urlparse

from dbfac.exception import DbFacError

UrlMapping = namedtuple("UrlMapping", ("key", "cast"))


URLPARSE_MAPPING = {
    "hostname": UrlMapping("_host", str),
    "username": UrlMapping("_user", str),
    "password": UrlMapping("_password", str),
    "port": UrlMapping("_port", int),
    "path": UrlMapping("_db", lambda value: value.replace("/", "")),
}


class BaseInterface(ABC):
    """Contract of a connection pool.

    A pool hands out connections exclusively. Every acquired connection
    must come back exactly once, either through `release` (healthy,
    reusable) or through `destroy` (closed and dropped from the pool).
    """

    scheme = "dummy"
    default_port: Optional[int] = None

    @abstractmethod
    def _setup_pool(self): ...

    @abstractmethod
    async def open(self): ...

    @abstractmethod
    async def close(self): ...

    @abstractmethod
    async def acquire(self) -> Any: ...

    @abstractmethod
    async def release(self, conn: Any) -> None: ...

    @abstractmethod
    async def destroy(self, conn: Any) -> None: ...

    @property
    @abstractmethod
    def active_count(self) -> int: ...

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
    ) -> None:
        """Pool initialization.

        Args:
            dsn (str, optional): DB data source name
            host (str, optional): DB address URL or IP
            port (int, optional): DB port. Defaults to the scheme default
            user (str, optional): DB user
            password (str, optional): DB password
            db (str, optional): DB name
            label (str, optional): Name used in log lines.
                Defaults to `"generic"`
            min_size (int, optional): Minimum number of connections in pool.
                Defaults to 1
            max_size (int, optional): Maximum number of connections in pool.
                Defaults to 100
        """

        if dsn and host:
            raise DbFacError("Cannot connect to DB using host and dsn")

        if not dsn:
            if port and (
                not isinstance(port, int) or port not in range(0, 65536)
            ):
                raise DbFacError(
                    "port: must be an integer between 0 and 65535"
                )

            if host is not None and (
                not isinstance(host, str) or not len(host) > 0
            ):
                raise DbFacError(
                    "host: must be a string at least 1 character long"
                )

        if password is not None and (
            not isinstance(password, str) or not len(password) > 0
        ):
            raise DbFacError(
                "password: must be a string at least 1 character long"
            )

        if max_size < 1 or min_size < 0 or min_size > max_size:
            raise DbFacError(
                "min_size/max_size: expected 0 <= min_size <= max_size "
                "and max_size >= 1"
            )

        self._dsn = dsn
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._db = db
        self._label = label
        self._min_size = min_size
        self._max_size = max_size

        self._populate_connection_args()
        self._populate_dsn()
        self._setup_pool()

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self.label} {self.dsn}>"

    def _populate_connection_args(self):
        dsn = self.dsn or ""
        if dsn:
            parts = urlparse(dsn)
            defaults = {
                "port": self.default_port,
                "hostname": "localhost",
                "path": "/",
            }
            for key, mapping in URLPARSE_MAPPING.items():
                if not getattr(self, mapping.key):
                    value = getattr(parts, key, None)
                    if value is None:
                        value = defaults.get(key)
                    if value is not None:
                        setattr(self, mapping.key, mapping.cast(value))
        if not self._host:
            self._host = "localhost"
        if not self._port:
            self._port = self.default_port

    def _populate_dsn(self):
        # The password never appears in the printable DSN
        self._dsn = (
            (
                f"{self.scheme}://{self.user}:...@"
                f"{self.host}:{self.port}/{self.db or ''}"
            )
            if self.password
            else (
                f"{self.scheme}://{self.user}@"
                f"{self.host}:{self.port}/{self.db or ''}"
            )
        )

    @property
    def dsn(self):
        return self._dsn

    @property
    def host(self):
        return self._host

    @property
    def port(self):
        return self._port

    @property
    def user(self):
        return self._user

    @property
    def password(self):
        return self._password

    @property
    def db(self):
        return self._db

    @property
    def label(self):
        return self._label

    @property
    def min_size(self):
        return self._min_size

    @property
    def max_size(self):
        return self._max_size

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Any]:
        """Borrow a connection for the duration of the block.

        The connection is released when the block exits normally and
        destroyed when it exits with an exception.
        """
        conn = await self.acquire()
        try:
            yield conn
        except BaseException:
            await self.destroy(conn)
            raise
        else:
            await self.release(conn)
