"""
Read-only access to the tenant's own audit trail.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select

from inventory_hub.api.dependencies import get_tenant_db, require_tenant_member
from inventory_hub.api.schemas import AuditLogListResponse, AuditLogResponse
from inventory_hub.database.models import AuditAction, AuditLog
from inventory_hub.tenancy.session import TenantSession

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    entity_type: Optional[str] = Query(None, description="Filter by entity kind, e.g. Product"),
    entity_id: Optional[UUID] = Query(None),
    action: Optional[AuditAction] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    claims: Dict[str, Any] = Depends(require_tenant_member),
    db: TenantSession = Depends(get_tenant_db),
):
    """Newest entries first."""
    filters = []
    if entity_type:
        filters.append(AuditLog.entity_type == entity_type)
    if entity_id:
        filters.append(AuditLog.entity_id == entity_id)
    if action:
        filters.append(AuditLog.action == action)

    total = db.scalar(select(func.count()).select_from(AuditLog).where(*filters)) or 0
    entries = db.scalars(
        select(AuditLog).where(*filters).order_by(AuditLog.timestamp.desc()).limit(limit)
    ).all()

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in entries],
        total=total,
    )
