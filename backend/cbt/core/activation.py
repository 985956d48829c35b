"""
Activation gate for test codes.

A code is either Inactive (the state every generated code starts in) or
Active. Students can only redeem and submit against active codes.

    Inactive --activate--> Active --deactivate--> Inactive

Deactivation is guarded: a code that any student has submitted against can
never be switched off, so completed attempts are never invalidated. The guard
is evaluated inside the same transaction as the update, with the code row
locked, so two administrators acting on the same code cannot both pass a
stale check.

The ``disabled`` flag is a separate kill-switch (set on redemption) and is
neither read nor written here.

Batches run every item in its own savepoint inside one transaction. An item
that cannot be processed is reported in ``errors`` and the rest still commit;
only a store failure rolls back the whole batch.
"""
import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.orm import Session

from cbt.core.activity_log import ActivityAction, ActivitySink, record_activity
from cbt.core.batch import (
    BatchItemResult,
    BatchOperation,
    BatchResult,
    CodeAction,
    normalize_code_ids,
)
from cbt.core.datetime_utils import utc_now
from cbt.core.db_error_handling import transaction
from cbt.core.error_responses import ErrorMessages
from cbt.core.exceptions import (
    AlreadyActiveError,
    AlreadyInactiveError,
    HasSubmissionsError,
    TestCodeNotFoundError,
    ValidationError,
)
from cbt.core.repositories import (
    CodeRepository,
    ResultRepository,
    SqlCodeRepository,
    SqlResultRepository,
)
from cbt.models.models import TestCode

logger = logging.getLogger(__name__)


@dataclass
class ActivationOutcome:
    """Result of a single-code transition."""

    code: TestCode
    action: CodeAction

    @property
    def new_status(self) -> str:
        return self.code.status


class ActivationGate:
    """Single and batch activate/deactivate/toggle for test codes."""

    def __init__(
        self,
        db: Session,
        codes: CodeRepository,
        results: ResultRepository,
        activity: ActivitySink,
    ):
        self.db = db
        self.codes = codes
        self.results = results
        self.activity = activity

    @classmethod
    def from_session(cls, db: Session, activity: ActivitySink) -> "ActivationGate":
        return cls(db, SqlCodeRepository(db), SqlResultRepository(db), activity)

    # ------------------------------------------------------------------
    # Single-code operations
    # ------------------------------------------------------------------

    def activate(self, code_id: int, user_id: int) -> ActivationOutcome:
        """
        Raises:
            TestCodeNotFoundError, AlreadyActiveError, StoreUnavailableError
        """
        return self._run_single(code_id, user_id, BatchOperation.ACTIVATE)

    def deactivate(self, code_id: int, user_id: int) -> ActivationOutcome:
        """
        Raises:
            TestCodeNotFoundError, AlreadyInactiveError, HasSubmissionsError,
            StoreUnavailableError
        """
        return self._run_single(code_id, user_id, BatchOperation.DEACTIVATE)

    def toggle(self, code_id: int, user_id: int) -> ActivationOutcome:
        """Activate an inactive code or deactivate an active one (guarded)."""
        return self._run_single(code_id, user_id, BatchOperation.TOGGLE)

    def _run_single(
        self, code_id: int, user_id: int, operation: BatchOperation
    ) -> ActivationOutcome:
        with transaction(self.db, f"{operation.value} test code"):
            code = self.codes.get(code_id, for_update=True)
            if code is None:
                raise TestCodeNotFoundError(code_id)
            action = self._apply(code, operation)

        logger.info(f"Test code {code.code} {action.value} by user {user_id}")
        self._log_transition(user_id, code.code, action, batch=False)
        return ActivationOutcome(code=code, action=action)

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    def batch_operate(
        self, code_ids: Iterable, operation: str, user_id: int
    ) -> BatchResult:
        """
        Apply ``operation`` to every code in ``code_ids``.

        Args:
            code_ids: Submitted ids; non-positive or non-numeric values are dropped
            operation: "activate", "deactivate" or "toggle"
            user_id: Acting administrator, for the audit trail

        Returns:
            BatchResult with one entry per processed code and one message per
            code that could not be processed

        Raises:
            ValidationError: Empty/unusable id list or unknown operation
            StoreUnavailableError: The store failed; no item is committed
        """
        try:
            op = BatchOperation(operation)
        except ValueError:
            raise ValidationError(ErrorMessages.INVALID_OPERATION)
        ids = normalize_code_ids(code_ids)

        batch = BatchResult()
        with transaction(self.db, f"{op.value} test codes"):
            for code_id in ids:
                self._process_item(batch, code_id, op)

        for item in batch.results:
            self._log_transition(user_id, item.code, item.action, batch=True)

        logger.info(
            f"Batch {op.value} by user {user_id}: "
            f"{batch.success_count} processed, {batch.error_count} errors"
        )
        return batch

    def _process_item(
        self, batch: BatchResult, code_id: int, operation: BatchOperation
    ) -> None:
        code = self.codes.get(code_id, for_update=True)
        if code is None:
            batch.add_error(ErrorMessages.batch_code_not_found(code_id))
            return

        token = code.code
        try:
            with self.db.begin_nested():
                action = self._apply(code, operation)
        except AlreadyActiveError:
            batch.add_error(ErrorMessages.batch_already_active(token))
        except AlreadyInactiveError:
            batch.add_error(ErrorMessages.batch_already_inactive(token))
        except HasSubmissionsError as e:
            batch.add_error(
                ErrorMessages.batch_has_submissions(token, e.students_count)
            )
        else:
            batch.add_success(
                BatchItemResult(code=token, action=action, new_status=code.status)
            )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _apply(self, code: TestCode, operation: BatchOperation) -> CodeAction:
        if operation == BatchOperation.ACTIVATE:
            return self._activate(code)
        if operation == BatchOperation.DEACTIVATE:
            return self._deactivate(code)
        if code.active:
            return self._deactivate(code)
        return self._activate(code)

    def _activate(self, code: TestCode) -> CodeAction:
        if code.active:
            raise AlreadyActiveError()
        code.active = True
        code.activated_at = utc_now()
        self.db.flush()
        return CodeAction.ACTIVATED

    def _deactivate(self, code: TestCode) -> CodeAction:
        if not code.active:
            raise AlreadyInactiveError()
        submissions = self.results.count_for_code(code.id)
        if submissions > 0:
            raise HasSubmissionsError(submissions)
        code.active = False
        code.deactivated_at = utc_now()
        self.db.flush()
        return CodeAction.DEACTIVATED

    def _log_transition(
        self, user_id: int, code: str, action: CodeAction, *, batch: bool
    ) -> None:
        if action == CodeAction.ACTIVATED:
            audit_action = (
                ActivityAction.CODE_ACTIVATED_BATCH
                if batch
                else ActivityAction.CODE_ACTIVATED
            )
            verb = "Activated"
        else:
            audit_action = (
                ActivityAction.CODE_DEACTIVATED_BATCH
                if batch
                else ActivityAction.CODE_DEACTIVATED
            )
            verb = "Deactivated"
        record_activity(self.activity, user_id, audit_action, f"{verb} code {code}")
