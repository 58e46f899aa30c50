"""
Audit trail writer.

``record_audit`` only adds the entry to the caller's session. The caller
commits the mutation and its audit entry together, so either both are
persisted or neither is.
"""
import json
import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from email_platform.models import AuditAction, AuditLog

logger = logging.getLogger(__name__)


def _serialize(values: Optional[Dict[str, Any]]) -> Optional[str]:
    if values is None:
        return None
    return json.dumps(values, default=str)


def record_audit(
    db: AsyncSession,
    *,
    organization_id: int,
    user_id: Optional[int],
    action: Union[AuditAction, str],
    resource_type: str,
    resource_id: Optional[int] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    entry = AuditLog(
        organization_id=organization_id,
        user_id=user_id,
        action=action.value if isinstance(action, AuditAction) else action,
        resource_type=resource_type,
        resource_id=resource_id,
        old_values=_serialize(old_values),
        new_values=_serialize(new_values),
        ip_address=ip_address,
    )
    db.add(entry)
    logger.debug(f"Audit: {entry.action} {resource_type}:{resource_id} org={organization_id} user={user_id}")
    return entry
