from .executor import MysqlExecutor
from .interface import MysqlPool

__all__ = ("MysqlExecutor", "MysqlPool")
