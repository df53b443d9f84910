"""
Registry Engine — Notification feed.

Territory writes leave a short entry in the feed ("new critical risk in
Brezno - Povodeň"). Creating an entry is best effort: a failure is logged and
never undoes the write that triggered it.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from config.settings import NOTIFICATION_TYPES
from database.models import Notification
from registry_engine.classifier import risk_label
from registry_engine.contracts import RiskTier, TerritoryRecord
from registry_engine.errors import RepositoryError

logger = logging.getLogger(__name__)


def _to_dict(n: Notification) -> Dict[str, Any]:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "metadata": n.details or {},
        "read": bool(n.is_read),
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


def territory_message(kind: str, record: TerritoryRecord, tier: Optional[RiskTier] = None) -> str:
    if kind == "NEW_RISK":
        return (
            f"Pridané {risk_label(tier)} riziko v obci "
            f"{record.municipality_name} - {record.event_name}"
        )
    if kind == "RISK_UPDATE":
        return f"Riziko v obci {record.municipality_name} bolo aktualizované"
    return f"Riziko v obci {record.municipality_name} - {record.event_name} bolo odstránené"


class NotificationFeed:
    def __init__(self, session_factory: Callable):
        self._session_factory = session_factory

    def create(self, kind: str, message: str, metadata: Optional[Dict[str, Any]] = None) -> Optional[int]:
        """Store a notification; returns its id, or None when storing failed."""
        if kind not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type '{kind}'")
        try:
            with self._session_factory() as session:
                row = Notification(
                    type=kind,
                    title=NOTIFICATION_TYPES[kind],
                    message=message,
                    details=metadata or {},
                    is_read=False,
                )
                session.add(row)
                session.flush()
                return row.id
        except SQLAlchemyError as e:
            logger.error(f"Error creating notification: {e}")
            return None

    def territory_changed(self, kind: str, record: TerritoryRecord, tier: Optional[RiskTier] = None) -> Optional[int]:
        metadata = {
            "municipality": record.municipality_name,
            "event": record.event_name,
        }
        if tier is not None:
            metadata["risk_level"] = tier.value
        return self.create(kind, territory_message(kind, record, tier), metadata)

    def list(self, limit: int = 50, unread_only: bool = False) -> List[Dict[str, Any]]:
        try:
            with self._session_factory() as session:
                query = session.query(Notification)
                if unread_only:
                    query = query.filter(Notification.is_read.is_(False))
                rows = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
                return [_to_dict(n) for n in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error loading notifications: {e}")
            raise RepositoryError(f"Could not load notifications: {e}") from e

    def unread_count(self) -> int:
        try:
            with self._session_factory() as session:
                return session.query(Notification).filter(Notification.is_read.is_(False)).count()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Could not count notifications: {e}") from e

    def mark_read(self, notification_id: int) -> bool:
        try:
            with self._session_factory() as session:
                row = session.get(Notification, notification_id)
                if row is None:
                    return False
                row.is_read = True
                return True
        except SQLAlchemyError as e:
            raise RepositoryError(f"Could not update notification: {e}") from e

    def mark_all_read(self) -> int:
        try:
            with self._session_factory() as session:
                return (
                    session.query(Notification)
                    .filter(Notification.is_read.is_(False))
                    .update({Notification.is_read: True}, synchronize_session=False)
                )
        except SQLAlchemyError as e:
            raise RepositoryError(f"Could not update notifications: {e}") from e

    def clear(self) -> int:
        try:
            with self._session_factory() as session:
                return session.query(Notification).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            raise RepositoryError(f"Could not clear notifications: {e}") from e
