"""Append-only audit trail writer."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from sqlalchemy.orm import Session

from .models import AuditLog
from .models.enums import ActorType, enum_value

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class RequestOrigin:
    """Who triggered an action and from where."""

    actor_type: ActorType = ActorType.SYSTEM
    actor_id: str | None = None
    ip: str | None = None
    user_agent: str | None = None


SYSTEM = RequestOrigin()


class AuditLogger:
    def __init__(self, session: Session) -> None:
        self._session = session

    def log(
        self,
        action: str,
        *,
        entity_type: str,
        entity_id: object,
        metadata: dict[str, Any] | None = None,
        origin: RequestOrigin = SYSTEM,
    ) -> AuditLog:
        entry = AuditLog(
            actor_type=enum_value(origin.actor_type),
            actor_id=origin.actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            ip=origin.ip,
            user_agent=(origin.user_agent or "")[:512] or None,
            details=metadata or {},
        )
        self._session.add(entry)
        self._session.flush()
        logger.debug("audit %s %s:%s", action, entity_type, entity_id)
        return entry


__all__ = ["SYSTEM", "AuditLogger", "RequestOrigin"]
