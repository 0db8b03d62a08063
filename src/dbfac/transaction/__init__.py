"""
Transaction flow for dbfac: one unit of work, one borrowed connection.
"""

from .context import TransactionContext
from .interfaces import (
    ERR_TX_FLOW_FAILURE,
    TransactionError,
    TransactionStage,
    TransactionState,
)
from .runner import TransactionRunner

__all__ = [
    "ERR_TX_FLOW_FAILURE",
    "TransactionContext",
    "TransactionError",
    "TransactionRunner",
    "TransactionStage",
    "TransactionState",
]
