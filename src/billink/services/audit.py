"""Best-effort audit trail."""

from __future__ import annotations

import enum
import logging
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from billink.core.actors import Actor
from billink.core.models import AuditLog
from billink.core.repositories.audit import AuditLogRepository

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Decimal):
        # Amounts read back from the database lose trailing zeros.
        if value.as_tuple().exponent > -2:
            value = value.quantize(Decimal("0.01"))
        return format(value, "f")
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


class AuditService:
    """Records who did what. Never fails the operation being audited."""

    def __init__(self, audit_repo: AuditLogRepository):
        self._audit_repo = audit_repo

    async def record(
        self,
        actor: Actor,
        action: str,
        entity: str,
        entity_id: UUID | str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog | None:
        try:
            return await self._audit_repo.create(
                user_id=actor.id,
                role=actor.role.value,
                action=action,
                entity=entity,
                entity_id=str(entity_id) if entity_id is not None else None,
                details=_jsonable(details) if details is not None else None,
                ip_address=actor.source_address,
            )
        except Exception:
            logger.warning(
                "Failed to record audit entry %s for %s %s",
                action,
                entity,
                entity_id,
                exc_info=True,
            )
            return None
