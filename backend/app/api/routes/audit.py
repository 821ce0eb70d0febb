"""
Audit trail, newest first. Staff only.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.core.security import require_staff
from app.schemas.audit import AuditLogListResponse, AuditLogResponse
from app.schemas.identity import CurrentUser
from app.services.audit_service import list_audit_logs

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs_endpoint(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    logs, total = await list_audit_logs(db, limit=limit, offset=offset)
    return AuditLogListResponse(logs=[AuditLogResponse.model_validate(log) for log in logs], total=total)
