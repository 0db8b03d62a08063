from importlib.metadata import version

from .base.interface import BaseInterface
from .exception import DbFacError, NotStartedError
from .facility import DbFacility
from .hydrator import Hydrator
from .sql.mysql.executor import MysqlExecutor
from .sql.mysql.interface import MysqlPool
from .stream import QueryStream, StreamState
from .transaction import (
    TransactionContext,
    TransactionError,
    TransactionRunner,
    TransactionStage,
    TransactionState,
)

__version__ = version("dbfac")

__all__ = (
    "BaseInterface",
    "DbFacError",
    "DbFacility",
    "Hydrator",
    "MysqlExecutor",
    "MysqlPool",
    "NotStartedError",
    "QueryStream",
    "StreamState",
    "TransactionContext",
    "TransactionError",
    "TransactionRunner",
    "TransactionStage",
    "TransactionState",
)
