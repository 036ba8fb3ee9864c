import logging
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional
from uuid import uuid4

from marketplace.core.config import settings
from marketplace.core.logging import get_correlation_id, safe_truncate
from marketplace.models.audit import AuditEntry

logger = logging.getLogger(__name__)


class AuditTrail:
    """In-memory trail of administrator actions, newest first.

    Notes:
    - Respects AUDIT_ENABLED and AUDIT_MAX_ENTRIES.
    - Metadata values are truncated; the host decides where entries are persisted.
    """

    def __init__(self, *, enabled: Optional[bool] = None, max_entries: Optional[int] = None):
        self._enabled = settings.AUDIT_ENABLED if enabled is None else enabled
        limit = settings.AUDIT_MAX_ENTRIES if max_entries is None else max_entries
        if limit < 0:
            raise ValueError(f"AUDIT_MAX_ENTRIES cannot be negative (got {limit})")
        self._entries: Deque[AuditEntry] = deque(maxlen=limit or None)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def record(
        self,
        *,
        actor: str,
        action: str,
        target: str,
        details: str,
        timestamp: datetime,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditEntry]:
        if not self._enabled:
            return None

        entry = AuditEntry(
            entry_id=str(uuid4()),
            timestamp=timestamp,
            actor=actor or "System",
            action=action,
            target=target,
            details=safe_truncate(details),
            metadata={k: safe_truncate(v) for k, v in (metadata or {}).items()},
            correlation_id=get_correlation_id(),
        )
        self._entries.appendleft(entry)
        logger.info(
            "[audit] %s",
            action,
            extra={"actor": entry.actor, "action": action, "target": target},
        )
        return entry

    def entries(self, *, action: Optional[str] = None, target: Optional[str] = None) -> List[AuditEntry]:
        return [
            entry for entry in self._entries
            if (action is None or entry.action == action)
            and (target is None or entry.target == target)
        ]

    def __len__(self) -> int:
        return len(self._entries)
