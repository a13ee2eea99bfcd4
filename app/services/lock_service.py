import uuid

import redis

from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL, JOB_LOCK_TTL_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje atomowo przez lua, skrypt dziala jako jedna nieprzerywalna operacja
#nie mozna wcisnac sie miedzy GET a DEL, wiec lock innego workera nie zostanie skasowany


class LockService:
    """
    -blokada joba schedulera (skip-if-running)
    -zwalnianie locka tylko przez wlasciciela tokena
    -TTL zeby lock po padnietym workerze sam wygasl
    """

    def __init__(self, url: str | None = None, client=None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _key(job_name: str) -> str:
        return f"job:{job_name}:lock"

    @redis_retry()
    def acquire_job_lock(self, job_name: str, ttl: int = JOB_LOCK_TTL_SECONDS) -> str | None:
        token = uuid.uuid4().hex
        key = self._key(job_name)
        #SET job:auto_deliver:lock "<token>" NX EX 1800
        acquired = self.redis.set(name=key, value=token, nx=True, ex=ttl)
        if not acquired:
            logger.info(f"Lock {key} is held by another run")
            return None
        logger.info(f"Acquired lock {key}")
        return token

    @redis_retry()
    def release_job_lock(self, job_name: str, token: str) -> bool:
        key = self._key(job_name)
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        logger.info(f"Release lock {key}: {bool(res)}")
        return bool(res)
