"""Headless monitor: python -m autocare_dashboard"""
from __future__ import annotations

import asyncio
import logging

from autocare_dashboard.app import create_client, lifespan
from autocare_dashboard.application.dto.session import Session
from autocare_dashboard.config import settings
from autocare_dashboard.domain.entities.notification import Notification
from autocare_dashboard.domain.value_objects.ids import UserId

logger = logging.getLogger(__name__)


def _log_notification(notification: Notification) -> None:
    logger.info("[%s] %s: %s", notification.type, notification.title, notification.message)


async def run_monitor() -> None:
    session = Session(
        user_id=UserId(settings.SESSION_USER_ID),
        name=settings.SESSION_NAME,
        email=settings.SESSION_EMAIL,
        is_admin=settings.SESSION_IS_ADMIN,
        token=settings.SESSION_TOKEN,
    )
    client = create_client(session, settings)
    client.notifications.add_listener(_log_notification)

    async with lifespan(client):
        logger.info(
            "Monitoring as %s %s: %d conversation(s), %d pending",
            "admin" if session.is_admin else "user",
            session.user_id,
            len(client.messages.conversations),
            len(client.messages.pending_messages()),
        )
        try:
            while True:
                await asyncio.sleep(3600)
        except asyncio.CancelledError:
            pass


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if not settings.SESSION_USER_ID:
        raise SystemExit("SESSION_USER_ID is not set")
    try:
        asyncio.run(run_monitor())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
