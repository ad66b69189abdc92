"""
Celery tasks for chat app.

This module defines periodic maintenance for:
- Presence reconciliation (users left ONLINE by a crashed server process,
  connection ids and room entries left behind by dead sockets)

Related files:
    - presence.py: PresenceStore
    - migrations/0002_add_celery_beat_schedules.py: Beat schedule

Usage:
    from chat.tasks import mark_stale_users_offline

    mark_stale_users_offline.delay()
"""

import logging

from asgiref.sync import async_to_sync
from celery import shared_task
from django.utils import timezone

from authentication.models import User, UserStatus
from chat.broadcaster import notify_rooms
from chat.constants import EVENTS
from chat.presence import PresenceStore
from chat.services import RoomService

logger = logging.getLogger(__name__)


async def _reconcile_presence(user_ids: list) -> list:
    """
    Prune dead connections from presence.

    Returns:
        Ids among ``user_ids`` that hold no live connection
    """
    store = PresenceStore.from_settings()
    try:
        pruned = await store.prune_rooms()
        if pruned:
            logger.info(f"Pruned {pruned} dead room presence entries")

        stale = []
        for user_id in user_ids:
            await store.prune_user_connections(user_id)
            if not await store.get_user_connection_ids(user_id):
                await store.purge_user(user_id)
                await store.clear_user_typing(user_id)
                stale.append(user_id)
        return stale
    finally:
        await store.close()


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def mark_stale_users_offline(self) -> int:
    """
    Persist OFFLINE for users whose presence has expired.

    A user is stale when the database says ONLINE or AWAY but presence
    holds no live connection for them, which happens when a server
    process dies without running disconnect handlers. Dead connection ids
    and the room entries they held are pruned from presence on every
    run. Members of a stale user's rooms receive ``user_status_changed``.

    Returns:
        Number of users marked offline
    """
    candidates = list(
        User.objects.filter(
            status__in=[UserStatus.ONLINE, UserStatus.AWAY]
        ).values_list("id", flat=True)
    )
    stale = async_to_sync(_reconcile_presence)(candidates)
    if not stale:
        return 0

    User.objects.filter(id__in=stale).update(
        status=UserStatus.OFFLINE, updated_at=timezone.now()
    )

    for user_id in stale:
        notify_rooms(
            RoomService.member_room_ids(user_id),
            EVENTS.USER_STATUS_CHANGED,
            {"userId": str(user_id), "status": UserStatus.OFFLINE.value},
        )

    logger.info(f"Marked {len(stale)} stale users offline")
    return len(stale)
