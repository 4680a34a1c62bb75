from __future__ import annotations

from billink.core.models import AuditLog
from billink.core.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    """AuditLog-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(AuditLog)
