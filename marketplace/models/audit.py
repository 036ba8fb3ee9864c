from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class AuditEntry(BaseModel):
    """One administrator action on plans or seller subscriptions."""
    model_config = ConfigDict(frozen=True)

    entry_id: str
    timestamp: datetime
    actor: str
    action: str
    target: str
    details: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None
