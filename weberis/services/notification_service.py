"""Per-user notification feed."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update

from weberis.models import Notification, NotificationType
from weberis.services.base_service import BaseService, ListQuery, Page

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5


def time_ago(created_at: datetime, now: datetime | None = None) -> str:
    """Render a timestamp relative to ``now`` the way the feed displays it."""
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    diff = int((now - created_at).total_seconds())

    if diff < 60:
        return "Just now"
    if diff < 3600:
        minutes = diff // 60
        return f"{minutes} {'minute' if minutes == 1 else 'minutes'} ago"
    if diff < 86400:
        hours = diff // 3600
        return f"{hours} {'hour' if hours == 1 else 'hours'} ago"
    if diff < 604800:
        days = diff // 86400
        return f"{days} {'day' if days == 1 else 'days'} ago"
    return f"{created_at:%b} {created_at.day}, {created_at.year}"


class NotificationService(BaseService):
    """Append-only notifications, read per user and bulk-marked read."""

    def append(
        self,
        user_id: int,
        type_: NotificationType | str,
        title: str,
        message: str,
        link: str | None = None,
        related_id: int | None = None,
    ) -> Notification:
        """Queue a notification on the current transaction; the caller commits."""
        notification = Notification(
            user_id=user_id,
            type=NotificationType(type_),
            title=title,
            message=message,
            link=link,
            related_id=related_id,
            is_read=False,
        )
        self.db.add(notification)
        self.db.flush()
        return notification

    def _user_feed(self, user_id: int):
        return (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        )

    def list_recent(self, user_id: int, limit: int = RECENT_LIMIT) -> list[Notification]:
        return list(self.db.scalars(self._user_feed(user_id).limit(limit)).all())

    def unread_count(self, user_id: int) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
        return self.db.scalar(stmt) or 0

    def total_count(self, user_id: int) -> int:
        return self.db.scalar(select(func.count(Notification.id)).where(Notification.user_id == user_id)) or 0

    def list_page(self, user_id: int, page: int = 1) -> Page[Notification]:
        return self.paginate(
            self._user_feed(user_id),
            ListQuery(page=page),
            per_page=self.config.NOTIFICATION_PAGE_SIZE,
        )

    def mark_all_read(self, user_id: int) -> int:
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        with self.transaction():
            updated = self.db.execute(stmt).rowcount or 0
        logger.info(
            "notifications.marked_read",
            extra={"event": "notifications.marked_read", "user_id": user_id, "updated": updated},
        )
        return updated

    def view_all(self, user_id: int, page: int = 1, now: datetime | None = None) -> Page[dict[str, Any]]:
        """List a page, then mark the whole feed read.

        Items are rendered before marking so they keep their unread flags.
        """
        listing = self.list_page(user_id, page)
        listing.items = [self.serialize(item, now) for item in listing.items]
        self.mark_all_read(user_id)
        return listing

    def recent_summary(self, user_id: int, limit: int = RECENT_LIMIT, now: datetime | None = None) -> dict[str, Any]:
        return {
            "notifications": [self.serialize(item, now) for item in self.list_recent(user_id, limit)],
            "unread_count": self.unread_count(user_id),
            "has_more": self.total_count(user_id) > limit,
        }

    @staticmethod
    def serialize(notification: Notification, now: datetime | None = None) -> dict[str, Any]:
        return {
            "id": notification.id,
            "type": notification.type.value,
            "title": notification.title,
            "message": notification.message,
            "link": notification.link,
            "related_id": notification.related_id,
            "is_read": notification.is_read,
            "created_at": notification.created_at,
            "time_ago": time_ago(notification.created_at, now),
        }
