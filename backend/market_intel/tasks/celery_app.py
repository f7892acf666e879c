from celery import Celery
from celery.schedules import crontab
from market_intel.config import get_settings

settings = get_settings()

celery_app = Celery(
    "market_intel",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="America/New_York",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,

    # Resilience settings
    task_soft_time_limit=600,      # raises SoftTimeLimitExceeded
    task_time_limit=660,           # hard kill
    worker_max_tasks_per_child=100,

    # Beat schedule (US/Eastern, configurable via .env)
    beat_schedule={
        # Daily pipeline before the US open
        "daily-market-intelligence": {
            "task": "tasks.run_daily_pipeline",
            "schedule": crontab(
                minute=settings.schedule_pipeline_minute,
                hour=settings.schedule_pipeline_hour,
                day_of_week="1-5",
            ),
        },
        # Narrative rollup once the day's articles are persisted
        "narrative-rollup": {
            "task": "tasks.run_narrative_rollup",
            "schedule": crontab(
                minute=settings.schedule_narrative_minute,
                hour=settings.schedule_narrative_hour,
                day_of_week="1-5",
            ),
        },
        # Email digest, only sent when alert thresholds are crossed
        "daily-digest": {
            "task": "tasks.send_daily_digest",
            "schedule": crontab(
                minute=settings.schedule_digest_minute,
                hour=settings.schedule_digest_hour,
                day_of_week="1-5",
            ),
        },
        # Weekly scorecard after the Friday close
        "weekly-scorecard": {
            "task": "tasks.generate_weekly_scorecard",
            "schedule": crontab(
                minute=settings.schedule_scorecard_minute,
                hour=settings.schedule_scorecard_hour,
                day_of_week="5",
            ),
        },
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["market_intel.tasks"], related_name="intelligence_tasks")
