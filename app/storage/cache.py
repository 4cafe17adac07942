import json
import hashlib
import logging
from typing import Dict, Optional

import redis

from app.config.settings import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class ScheduleCache:
    """Solved responses keyed by a hash of the problem and the solve options."""

    def __init__(self, redis_url: str = settings.redis_url, ttl_seconds: int = settings.cache_ttl_seconds):
        self.redis_client = redis.from_url(redis_url, decode_responses=True)
        self.ttl_seconds = ttl_seconds

    def get(self, problem_hash: str) -> Optional[Dict]:
        """Retrieve cached schedule by problem hash."""
        cached = self.redis_client.get(f"gantt:{problem_hash}")
        if cached:
            return json.loads(cached)
        return None

    def set(self, problem_hash: str, schedule: Dict) -> None:
        self.redis_client.setex(
            f"gantt:{problem_hash}",
            self.ttl_seconds,
            json.dumps(schedule, default=str)
        )

    @staticmethod
    def hash_problem(problem: Dict, options: Dict) -> str:
        """Generate hash from problem definition and solve options."""
        data = json.dumps({"problem": problem, "options": options}, sort_keys=True)
        return hashlib.sha256(data.encode()).hexdigest()[:16]

    def health_check(self) -> bool:
        """Check Redis connection."""
        try:
            self.redis_client.ping()
            return True
        except redis.RedisError as exc:
            logger.warning(f"Redis unavailable: {exc}")
            return False
