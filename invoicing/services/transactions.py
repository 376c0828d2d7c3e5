"""
Transaction Submission

Wraps StoreInterface.submit with retries and acknowledgement handling.

DESIGN DECISION: A transaction is either acknowledged or reported as
failed. Transient store errors are retried with exponential backoff; once
the attempts are used up a TransactionFailedError reaches the caller.
Conflicts and missing entities are not transient and are raised at once.
Because stores apply nothing on failure, the caller's state is untouched
either way.
"""

from collections.abc import Sequence
from typing import Optional
from uuid import UUID

import structlog
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from invoicing.audit import AuditLogger
from invoicing.config import get_settings
from invoicing.models.operations import Operation, TransactionReceipt
from invoicing.services.storage import (
    ConflictError,
    NotFoundError,
    StorageError,
    StoreInterface,
    TransactionFailedError,
)


logger = structlog.get_logger(__name__)


class TransactionSubmitter:
    """Submits transactions to a store and awaits the acknowledgement."""

    def __init__(
        self,
        store: StoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        max_attempts: Optional[int] = None,
        backoff_min: Optional[float] = None,
        backoff_max: Optional[float] = None,
    ):
        settings = get_settings().store
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self.max_attempts = max_attempts or settings.submit_max_attempts
        backoff_min = settings.backoff_min_seconds if backoff_min is None else backoff_min
        backoff_max = settings.backoff_max_seconds if backoff_max is None else backoff_max

        self._submit_with_retry = retry(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=backoff_min, min=backoff_min, max=backoff_max),
            retry=retry_if_not_exception_type((ConflictError, NotFoundError, ValueError)),
            reraise=True,
        )(self._submit_once)

    @property
    def store(self) -> StoreInterface:
        return self._store

    async def _submit_once(self, operations: list[Operation]) -> TransactionReceipt:
        try:
            return await self._store.submit(operations)
        except StorageError as e:
            logger.warning(
                "transaction_attempt_failed",
                operation_count=len(operations),
                error=str(e),
            )
            raise

    async def submit(
        self,
        operations: Sequence[Operation],
        correlation_id: UUID,
    ) -> TransactionReceipt:
        """
        Commit operations as one transaction.

        Raises:
            ConflictError: A guarded precondition failed (not retried)
            NotFoundError: An operation references a missing entity
            ValueError: An operation is malformed
            TransactionFailedError: The store kept failing
        """
        operations = list(operations)
        try:
            receipt = await self._submit_with_retry(operations)
        except (ConflictError, NotFoundError, ValueError):
            raise
        except Exception as e:
            await self._audit.log_transaction_failed(
                operation_count=len(operations),
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise TransactionFailedError(
                f"Transaction not committed after {self.max_attempts} attempts: {e}",
                operation_count=len(operations),
            ) from e

        await self._audit.log_transaction_submitted(
            transaction_id=receipt.transaction_id,
            operation_count=receipt.operation_count,
            correlation_id=correlation_id,
        )
        return receipt
