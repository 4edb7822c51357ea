from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.models.admin_audit_log import AdminAuditLog


def write_audit_log(
    db: Session,
    actor: Optional[str],
    action: str,
    entity_type: str,
    entity_id: str,
    message: str,
    meta: Optional[Dict[str, Any]] = None,
) -> AdminAuditLog:
    """
    Stage an audit row on the caller's session.

    The row is committed together with the write it describes, so a failed
    write never leaves a dangling audit entry.
    """
    entry = AdminAuditLog(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        message=message,
        meta=meta or {},
    )
    db.add(entry)
    return entry

