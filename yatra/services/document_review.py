"""Document review workflow service."""
import logging
from typing import Optional
from yatra.db.models import DocumentStatus
from yatra.schemas.allocation import Changeset, FailureKind, OperationResult
from yatra.schemas.registration import Registration
from yatra.services.locking import KeyedLockRegistry, get_lock_registry, registration_key
from yatra.services.store import AllocationStore, StoreCommitError


logger = logging.getLogger(__name__)


class DocumentReviewService:
    """
    Reviews the ticket images uploaded with a registration.

    ``pending`` moves to ``approved`` or ``rejected``; ``cancelled`` is a
    terminal override applied by the host and blocks every later review and
    room assignment. Review never touches room occupancy: a rejected
    registration keeps, and may still receive, its rooms.
    """

    def __init__(self, store: AllocationStore, locks: Optional[KeyedLockRegistry] = None):
        self.store = store
        self.locks = locks or get_lock_registry()

    def approve(self, registration_id: str) -> OperationResult:
        """Approve documents and clear any earlier rejection reason."""
        return self._transition(
            "approve",
            registration_id,
            dict(document_status=DocumentStatus.APPROVED, rejection_reason=None),
            "Documents approved.",
        )

    def reject(self, registration_id: str, reason: Optional[str]) -> OperationResult:
        """
        Reject documents with a reason shown to the registrant.

        Args:
            registration_id: Registration under review
            reason: Why the documents were rejected; must not be blank

        Returns:
            OperationResult; REASON_REQUIRED for a blank reason, checked
            before the registration is even looked up
        """
        if reason is None or not reason.strip():
            logger.info("reject refused for registration %s: %s", registration_id, FailureKind.REASON_REQUIRED.value)
            return OperationResult.failed(FailureKind.REASON_REQUIRED)

        return self._transition(
            "reject",
            registration_id,
            dict(document_status=DocumentStatus.REJECTED, rejection_reason=reason.strip()),
            "Documents rejected.",
        )

    def cancel(self, registration_id: str, reason: Optional[str] = None) -> OperationResult:
        """
        Cancel a registration.

        Rooms it still holds are left to the allocation engine to release.
        Cancelling twice is a no-op success.
        """
        _require_id(registration_id)
        with self.locks.hold([registration_key(registration_id)]):
            registration = self.store.get_registration(registration_id)
            if registration is None:
                return self._refuse("cancel", registration_id, FailureKind.REGISTRATION_NOT_FOUND)
            if registration.is_cancelled:
                return OperationResult.success("Registration is already cancelled.", registration=registration)

            reason = reason.strip() if reason and reason.strip() else None
            updated = registration.model_copy(
                update=dict(document_status=DocumentStatus.CANCELLED, cancellation_reason=reason), deep=True
            )
            return self._commit("cancel", updated, "Registration cancelled.")

    def _transition(self, action: str, registration_id: str, update: dict, message: str) -> OperationResult:
        _require_id(registration_id)
        with self.locks.hold([registration_key(registration_id)]):
            registration = self.store.get_registration(registration_id)
            if registration is None:
                return self._refuse(action, registration_id, FailureKind.REGISTRATION_NOT_FOUND)
            if registration.is_cancelled:
                return self._refuse(action, registration_id, FailureKind.INVALID_TRANSITION)

            updated = registration.model_copy(update=update, deep=True)
            return self._commit(action, updated, message)

    def _commit(self, action: str, registration: Registration, message: str) -> OperationResult:
        changeset = Changeset(action=action, registration=registration)
        try:
            self.store.apply(changeset)
        except StoreCommitError as exc:
            logger.error("%s for registration %s was not committed: %s", action, registration.id, exc)
            return OperationResult.failed(FailureKind.COMMIT_FAILED)

        logger.info("%s committed for registration %s", action, registration.id)
        return OperationResult.success(message, registration=registration, changeset=changeset)

    def _refuse(self, action: str, registration_id: str, kind: FailureKind) -> OperationResult:
        logger.info("%s refused for registration %s: %s", action, registration_id, kind.value)
        return OperationResult.failed(kind)


def _require_id(value: Optional[str]) -> None:
    if value is None or not str(value).strip():
        raise ValueError("registration_id must be a non-empty identifier")
