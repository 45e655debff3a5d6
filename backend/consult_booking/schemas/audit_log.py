from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field

from ..models import AuditAction


class AuditRecordRead(BaseModel):
    id: int
    action: AuditAction

    reservation_id: Optional[str] = None

    # ORM attribute is `details`, the column is `metadata`
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="details")
    created_at: datetime

    model_config = {"from_attributes": True}
