import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'onetime_project.settings')

app = Celery('onetime_project')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

app.conf.timezone = 'Asia/Seoul'


def schedule_every(sender, schedule, signature, name):
    """Register a recurring trigger. The only place that knows triggers are Celery beat."""
    sender.add_periodic_task(schedule, signature, name=name)


@app.on_after_finalize.connect
def setup_periodic_tasks(sender, **kwargs):
    from django.conf import settings
    from payments.tasks import create_weekly_settlements_task, process_due_settlements_task

    # Daily: settle everything that is due
    schedule_every(
        sender,
        crontab(minute=0, hour=settings.SETTLEMENT_DAILY_CRON_HOUR),
        process_due_settlements_task.s(),
        name='process-due-settlements-daily',
    )
    # Weekly: create settlements for completed jobs that slipped through
    schedule_every(
        sender,
        crontab(
            minute=0,
            hour=settings.SETTLEMENT_WEEKLY_CRON_HOUR,
            day_of_week=settings.SETTLEMENT_WEEKLY_CRON_DAY,
        ),
        create_weekly_settlements_task.s(),
        name='create-weekly-settlements',
    )
