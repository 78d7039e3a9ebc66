"""Audit service for security-sensitive mobile events."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from mobile_auth.models.audit import AuditEvent

MOBILE_LOGIN = "MOBILE_LOGIN"
MOBILE_REFRESH = "MOBILE_REFRESH"
MOBILE_LOGOUT = "MOBILE_LOGOUT"
MOBILE_LOGOUT_ALL = "MOBILE_LOGOUT_ALL"


class AuditService:
    """Persist immutable audit trail entries."""

    @staticmethod
    def log_event(
        db: Session,
        *,
        tenant_id: Optional[str],
        user_id: Optional[str],
        action: str,
        target_type: Optional[str] = "User",
        target_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        event = AuditEvent(
            tenant_id=tenant_id,
            user_id=user_id,
            action=action,
            target_type=target_type,
            target_id=target_id if target_id is not None else user_id,
            ip_address=ip_address,
            metadata_json=json.dumps(metadata or {}, ensure_ascii=False),
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event


audit_service = AuditService()
