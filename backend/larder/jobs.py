from __future__ import annotations

import logging
import threading

from sqlalchemy.orm import Session, sessionmaker

from larder.container import build_services
from larder.core.clock import Clock, utcnow
from larder.core.database import session_scope
from larder.core.logging import log_event
from larder.schemas.expiry import MaintenanceRunRead

logger = logging.getLogger("larder.jobs")


def run_maintenance(
    session_factory: sessionmaker[Session],
    *,
    cancel_event: threading.Event | None = None,
    clock: Clock = utcnow,
) -> MaintenanceRunRead:
    """One scheduled pass: expiry sweep, then the notification batch, then retention cleanup."""
    with session_scope(session_factory) as db:
        services = build_services(db, clock=clock)
        sweep = services.expiry.run_sweep(services.notifications, cancel_event=cancel_event)

    with session_scope(session_factory) as db:
        job = build_services(db, clock=clock).notifications.run_scheduled_job(cancel_event=cancel_event)

    with session_scope(session_factory) as db:
        cleaned = build_services(db, clock=clock).notifications.cleanup_old_notifications()

    log_event(
        logger,
        logging.INFO,
        "maintenance_completed",
        refreshed=sweep.refresh.processed,
        notifications_created=sweep.notifications_created + job.created_count,
        notifications_cleaned=cleaned,
    )
    return MaintenanceRunRead(sweep=sweep, notifications=job, notifications_cleaned=cleaned)
