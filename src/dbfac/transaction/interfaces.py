from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from dbfac.exception import DbFacError

ERR_TX_FLOW_FAILURE = "ERR_TX_FLOW_FAILURE"


class TransactionStage(Enum):
    """Stage of the transaction flow that raised the primary failure"""

    ACQUIRE = "acquire"
    BEGIN = "begin"
    EXECUTE = "execute"
    COMMIT = "commit"
    RELEASE = "release"


@dataclass(frozen=True)
class TransactionState:
    """How far a transaction progressed. Flags only move from False to True."""

    started: bool = False
    committed: bool = False
    reverted: bool = False

    def mark_started(self) -> TransactionState:
        return TransactionState(True, self.committed, self.reverted)

    def mark_committed(self) -> TransactionState:
        return TransactionState(self.started, True, self.reverted)

    def mark_reverted(self) -> TransactionState:
        return TransactionState(self.started, self.committed, True)


class TransactionError(DbFacError):
    """Failure envelope for a transaction.

    Carries the error that first failed together with a snapshot of the
    transaction progress at the time the failure was surfaced. Instances are
    built once by the runner and their attributes are read-only.

    Example:

    ```python
    try:
        await facility.run_transaction_async(work)
    except TransactionError as e:
        if e.tx_state.reverted:
            ...
    ```
    """

    kind = ERR_TX_FLOW_FAILURE

    def __init__(
        self,
        original_error: BaseException,
        tx_state: TransactionState,
        stage: Optional[TransactionStage] = None,
    ) -> None:
        message = f"{self.kind}: transaction failed"
        if stage is not None:
            message += f" at {stage.value}"
        super().__init__(message)
        self._original_error = original_error
        self._tx_state = tx_state
        self._stage = stage
        self.__cause__ = original_error

    @property
    def original_error(self) -> BaseException:
        return self._original_error

    @property
    def tx_state(self) -> TransactionState:
        return self._tx_state

    @property
    def stage(self) -> Optional[TransactionStage]:
        return self._stage

    def __str__(self) -> str:
        return f"{super().__str__()}: {self._original_error}"

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} kind={self.kind} "
            f"stage={self._stage.value if self._stage else None} "
            f"tx_state={self._tx_state} "
            f"original_error={self._original_error!r}>"
        )
