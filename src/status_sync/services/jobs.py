"""Redis-backed queue for fire-and-forget background jobs.

Each job name gets its own list: ``{prefix}:queue:{name}``. Delayed jobs wait
in a sorted set scored by release time (``{prefix}:delayed``) until a consumer
promotes them.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

import redis

from status_sync.core.settings import settings

logger = logging.getLogger(__name__)

MEDIA_DOWNLOAD_JOB = "media_download"
EMOJI_DOWNLOAD_JOB = "emoji_download"
LINK_CRAWL_JOB = "link_crawl"
DISTRIBUTION_JOB = "distribution"


class JobScheduler(Protocol):
    """Side effects the update processor hands off to background workers."""

    def schedule_media_download(self, attachment_id: int) -> None: ...

    def schedule_emoji_download(self, emoji_id: int) -> None: ...

    def schedule_link_preview_refresh(self, status_id: int, delay_seconds: int) -> None: ...

    def broadcast_update(self, status_id: int) -> None: ...


@dataclass(frozen=True)
class Job:
    """A queued unit of background work."""

    name: str
    args: list[Any]
    enqueued_at: float

    def to_json(self) -> str:
        return json.dumps({"job": self.name, "args": self.args, "enqueued_at": self.enqueued_at})

    @classmethod
    def from_json(cls, raw: str | bytes) -> Job:
        data = json.loads(raw)
        return cls(name=data["job"], args=list(data["args"]), enqueued_at=float(data["enqueued_at"]))


class RedisJobQueue:
    """Job scheduler pushing JSON jobs onto Redis lists."""

    def __init__(
        self,
        client: redis.Redis | None = None,
        *,
        prefix: str | None = None,
    ) -> None:
        self._redis = (
            client
            if client is not None
            else redis.Redis.from_url(settings.redis_url, decode_responses=True)
        )
        self._prefix = prefix or settings.job_queue_prefix

    def _queue_key(self, name: str) -> str:
        return f"{self._prefix}:queue:{name}"

    @property
    def _delayed_key(self) -> str:
        return f"{self._prefix}:delayed"

    def push(self, name: str, *args: Any) -> Job:
        """Enqueue a job for immediate processing."""
        job = Job(name=name, args=list(args), enqueued_at=time.time())
        self._redis.rpush(self._queue_key(name), job.to_json())
        logger.debug("Enqueued %s%s", name, tuple(args))
        return job

    def push_in(self, delay_seconds: float, name: str, *args: Any) -> Job:
        """Park a job until ``delay_seconds`` have passed."""
        job = Job(name=name, args=list(args), enqueued_at=time.time())
        release_at = job.enqueued_at + max(0.0, delay_seconds)
        self._redis.zadd(self._delayed_key, {job.to_json(): release_at})
        logger.debug("Scheduled %s%s in %.0fs", name, tuple(args), delay_seconds)
        return job

    def promote_due(self, now: float | None = None) -> int:
        """Move delayed jobs whose release time has passed onto their queues."""
        now = time.time() if now is None else now
        due: list[str] = self._redis.zrangebyscore(self._delayed_key, 0, now)
        promoted = 0
        for raw in due:
            # Only the worker that wins the removal promotes the job.
            if not self._redis.zrem(self._delayed_key, raw):
                continue
            job = Job.from_json(raw)
            self._redis.rpush(self._queue_key(job.name), raw)
            promoted += 1
        if promoted:
            logger.info("Promoted %d delayed jobs", promoted)
        return promoted

    def pop(self, name: str) -> Job | None:
        """Take the oldest queued job of the given name, if any."""
        raw = self._redis.lpop(self._queue_key(name))
        if raw is None:
            return None
        return Job.from_json(raw)

    # --- JobScheduler -----------------------------------------------------------------
    def schedule_media_download(self, attachment_id: int) -> None:
        self.push(MEDIA_DOWNLOAD_JOB, attachment_id)

    def schedule_emoji_download(self, emoji_id: int) -> None:
        self.push(EMOJI_DOWNLOAD_JOB, emoji_id)

    def schedule_link_preview_refresh(self, status_id: int, delay_seconds: int) -> None:
        self.push_in(delay_seconds, LINK_CRAWL_JOB, status_id)

    def broadcast_update(self, status_id: int) -> None:
        self.push(DISTRIBUTION_JOB, status_id)
