# celery_app.py  ─────────────────────────────────────────────────────────
from celery import Celery
from celery.schedules import crontab
import logging
import logging.config

from assets_availability.config.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

# ── 1.  Broker / backend  ────────────────────────────────────
celery_app = Celery(
    "assets_availability",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# ── 2.  Core config, Beat & routing ───────────────────────────
celery_app.conf.update(
    task_serializer       ='json',
    result_serializer     ='json',
    accept_content        =['json'],
    timezone              ='UTC',
    enable_utc            =True,

    # --- RedBeat keeps the schedule in Redis
    beat_scheduler        ="redbeat.RedBeatScheduler",
    redbeat_redis_url     =CELERY_BROKER_URL,

    # --- runs are long and sequential; one at a time per worker
    worker_prefetch_multiplier = 1,
    task_acks_late        =True,
    result_expires        =7 * 24 * 3600,
    task_routes           ={
        "refresh_routes":   {"queue": "refresh"},
        "refresh_slippage": {"queue": "refresh"},
        "dispatch_all":     {"queue": "dispatch"},
    },
    worker_max_tasks_per_child = 20,
)

# ── 3.  Beat schedule – daily refresh of every provider ───────────────
celery_app.conf.beat_schedule = {
    "daily-dispatch": {
        "task": "dispatch_all",
        "schedule": crontab(minute=0, hour=3),
        "options": {"queue": "dispatch"},
    }
}

# ── 4.  Logging ────────────────────────────────────────────
LOGGING_CONFIG = {
    "version": 1,
    "formatters": {
        "custom": {
            "format": "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "custom"},
    },
    "root": {"level": "INFO", "handlers": ["console"]},
}
celery_app.conf.worker_hijack_root_logger = False
logging.config.dictConfig(LOGGING_CONFIG)

# ── 5.  Register task modules ───────────────────────────────
import assets_availability.scheduler.dispatcher  # noqa: E402,F401
