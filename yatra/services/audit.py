"""Audit logging service."""
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session
import hashlib
import json
from yatra.db.models import AuditLog
from yatra.core.security import get_current_user


def state_hash(state: Optional[Dict[str, Any]]) -> Optional[str]:
    """Short stable hash of a JSON-serializable state."""
    if not state:
        return None
    return hashlib.sha256(
        json.dumps(state, sort_keys=True, default=str).encode()
    ).hexdigest()[:16]


class AuditService:
    """Service for audit logging."""

    def log_action(
        self,
        action: str,
        trip_id: Optional[str],
        registration_id: Optional[str],
        user: Optional[str],
        before_state: Optional[Dict[str, Any]] = None,
        after_state: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        db: Session = None
    ) -> Optional[AuditLog]:
        """
        Log an allocation or review action to the audit log.

        Args:
            action: Action name (assign, reassign, unassign, approve, reject, cancel)
            trip_id: Yatra ID (if known)
            registration_id: Registration acted on
            user: Operator identifier
            before_state: Registration state before the action (optional)
            after_state: Registration state after the action (optional)
            metadata: Additional metadata such as rooms freed or occupied (optional)
            db: Database session

        Returns:
            AuditLog entry or None if db not provided
        """
        if not db:
            return None

        # Get user if not provided
        if not user:
            user = get_current_user() or "system"

        audit_entry = AuditLog(
            trip_id=trip_id,
            registration_id=registration_id,
            user=user,
            action=action,
            before_hash=state_hash(before_state),
            after_hash=state_hash(after_state),
            metadata_json=metadata or {}
        )

        db.add(audit_entry)
        db.commit()
        db.refresh(audit_entry)

        return audit_entry
