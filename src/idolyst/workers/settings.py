"""arq worker settings module.

Import path for arq CLI: arq idolyst.workers.settings.WorkerSettings
"""

from __future__ import annotations

from arq import cron
from arq.connections import RedisSettings

from idolyst.config import get_settings
from idolyst.workers.leaderboard import (
    leaderboard_shutdown,
    leaderboard_startup,
    snapshot_leaderboard_job,
)


class WorkerSettings:
    """arq worker settings for scheduled Ascend jobs."""

    functions = [snapshot_leaderboard_job]
    cron_jobs = [
        # Daily at 00:05 UTC
        cron(snapshot_leaderboard_job, hour={0}, minute={5}, run_at_startup=False),
    ]
    on_startup = leaderboard_startup
    on_shutdown = leaderboard_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 2
    job_timeout = 300


__all__ = ["WorkerSettings"]
