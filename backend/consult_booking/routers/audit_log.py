from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import require_admin
from ..errors import ValidationError
from ..models import AuditAction, AuditRecord
from ..schemas.audit_log import AuditRecordRead


router = APIRouter(prefix="/audit", tags=["audit"], dependencies=[Depends(require_admin)])


@router.get("", response_model=list[AuditRecordRead])
def list_audit(
    action: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    """
    Read-only audit trail, newest first.

    Filters:
    - action (CREATED / CANCELLED / PURGED)
    - limit (default 50, max 200)
    """
    q = db.query(AuditRecord)

    if action:
        try:
            q = q.filter(AuditRecord.action == AuditAction(action.upper()))
        except ValueError:
            raise ValidationError({"action": "Unknown audit action"}) from None

    return (
        q.order_by(AuditRecord.created_at.desc(), AuditRecord.id.desc())
        .limit(max(1, min(limit, 200)))
        .all()
    )
