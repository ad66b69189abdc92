"""
Add Celery Beat schedule for chat maintenance tasks.

This migration creates periodic task schedules for:
- Presence reconciliation (stale ONLINE/AWAY users marked offline)
"""

from django.db import migrations


def create_periodic_tasks(apps, schema_editor):
    """Create periodic tasks for chat maintenance."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Every 5 minutes, matching the online presence TTL
    schedule_5min, _ = IntervalSchedule.objects.get_or_create(
        every=5,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name="Chat: Mark Stale Users Offline",
        defaults={
            "task": "chat.tasks.mark_stale_users_offline",
            "interval": schedule_5min,
            "enabled": True,
            "description": (
                "Persists OFFLINE for users whose presence expired without a "
                "disconnect, e.g. after a server process crash."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove chat periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name="Chat: Mark Stale Users Offline").delete()


class Migration(migrations.Migration):
    dependencies = [
        ("chat", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
