from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, update

from larder.models.notification import Notification, NotificationConfig
from larder.repositories.base import SqlRepository
from larder.schemas.notification import NotificationCreate, NotificationFilter


class NotificationRepository(SqlRepository):
    def create(self, member_id: int, payload: NotificationCreate, created_at: datetime) -> Notification:
        with self._guard("notifications.create"):
            notification = self._build(member_id, payload, created_at)
            self.db.add(notification)
            self.db.flush()
            return notification

    def create_many(
        self,
        member_id: int,
        payloads: list[NotificationCreate],
        created_at: datetime,
    ) -> list[Notification]:
        with self._guard("notifications.create_many"):
            notifications = [self._build(member_id, payload, created_at) for payload in payloads]
            self.db.add_all(notifications)
            self.db.flush()
            return notifications

    @staticmethod
    def _build(member_id: int, payload: NotificationCreate, created_at: datetime) -> Notification:
        return Notification(
            member_id=member_id,
            type=payload.type.value,
            title=payload.title,
            message=payload.message,
            priority=payload.priority.value,
            data=payload.data,
            dedup_key=payload.dedup_key,
            scheduled_for=payload.scheduled_for,
            expires_at=payload.expires_at,
            is_read=False,
            created_at=created_at,
        )

    def get(self, notification_id: int) -> Notification | None:
        with self._guard("notifications.get"):
            return self.db.get(Notification, notification_id)

    def list_items(self, member_id: int, filters: NotificationFilter) -> tuple[list[Notification], int]:
        with self._guard("notifications.list"):
            query = self.db.query(Notification).filter(Notification.member_id == member_id)
            if filters.type is not None:
                query = query.filter(Notification.type == filters.type.value)
            if filters.priority is not None:
                query = query.filter(Notification.priority == filters.priority.value)
            if filters.is_read is not None:
                query = query.filter(Notification.is_read.is_(filters.is_read))

            total = query.count()
            items = (
                query.order_by(Notification.created_at.desc(), Notification.id.desc())
                .offset(filters.offset)
                .limit(filters.limit)
                .all()
            )
            return items, total

    def count_unread(self, member_id: int) -> int:
        with self._guard("notifications.count_unread"):
            return (
                self.db.query(func.count(Notification.id))
                .filter(Notification.member_id == member_id, Notification.is_read.is_(False))
                .scalar()
                or 0
            )

    def count_unread_by_priority(self, member_id: int) -> dict[str, int]:
        with self._guard("notifications.count_unread_by_priority"):
            rows = (
                self.db.query(Notification.priority, func.count(Notification.id))
                .filter(Notification.member_id == member_id, Notification.is_read.is_(False))
                .group_by(Notification.priority)
                .all()
            )
            return {priority: count for priority, count in rows}

    def find_unread_by_dedup_key(self, member_id: int, type_: str, dedup_key: str) -> Notification | None:
        with self._guard("notifications.find_unread_by_dedup_key"):
            return (
                self.db.query(Notification)
                .filter(
                    Notification.member_id == member_id,
                    Notification.type == type_,
                    Notification.dedup_key == dedup_key,
                    Notification.is_read.is_(False),
                )
                .first()
            )

    def latest_created_at(self, member_id: int, type_: str) -> datetime | None:
        with self._guard("notifications.latest_created_at"):
            return (
                self.db.query(func.max(Notification.created_at))
                .filter(Notification.member_id == member_id, Notification.type == type_)
                .scalar()
            )

    def mark_read(self, notification: Notification, read_at: datetime) -> Notification:
        with self._guard("notifications.mark_read"):
            if not notification.is_read:
                notification.is_read = True
                notification.read_at = read_at
                self.db.add(notification)
                self.db.flush()
            return notification

    def mark_all_read(self, member_id: int, read_at: datetime) -> int:
        with self._guard("notifications.mark_all_read"):
            result = self.db.execute(
                update(Notification)
                .where(Notification.member_id == member_id, Notification.is_read.is_(False))
                .values(is_read=True, read_at=read_at)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

    def delete(self, notification: Notification) -> None:
        with self._guard("notifications.delete"):
            self.db.delete(notification)
            self.db.flush()

    def delete_read_older_than(self, cutoff: datetime, member_id: int | None = None) -> int:
        """Remove read notifications created before ``cutoff``. Unread ones are kept at any age."""
        with self._guard("notifications.delete_read_older_than"):
            stmt = delete(Notification).where(
                Notification.is_read.is_(True),
                Notification.created_at < cutoff,
            )
            if member_id is not None:
                stmt = stmt.where(Notification.member_id == member_id)
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
            return result.rowcount or 0


class NotificationConfigRepository(SqlRepository):
    def get_by_member(self, member_id: int) -> NotificationConfig | None:
        with self._guard("notification_configs.get_by_member"):
            return self.db.query(NotificationConfig).filter(NotificationConfig.member_id == member_id).first()

    def upsert(self, member_id: int, values: dict[str, Any]) -> NotificationConfig:
        with self._guard("notification_configs.upsert"):
            config = self.db.query(NotificationConfig).filter(NotificationConfig.member_id == member_id).first()
            if config is None:
                config = NotificationConfig(member_id=member_id, **values)
            else:
                for key, value in values.items():
                    setattr(config, key, value)
            self.db.add(config)
            self.db.flush()
            return config

    def list_member_ids(self) -> list[int]:
        with self._guard("notification_configs.list_member_ids"):
            rows = self.db.query(NotificationConfig.member_id).order_by(NotificationConfig.member_id).all()
            return [member_id for (member_id,) in rows]
