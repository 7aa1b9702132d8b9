"""
Abuse log schemas for the audit export.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class AbuseLogEntry(BaseModel):
    id: str
    user_id: str
    abuse_type: str
    severity: str
    details: dict[str, Any]
    device_fingerprint: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AbuseLogPage(BaseModel):
    items: list[AbuseLogEntry]
    limit: int
    offset: int
    count: int
