# storefront/services/lock_service.py
import uuid
from contextlib import contextmanager

import redis
from redis.exceptions import RedisError

from storefront.domain.errors import CartBusy, StoreUnavailable
from storefront.utils.retry import poll_until_true, redis_retry
from storefront.utils.settings import CART_LOCK_ATTEMPTS, CART_LOCK_TTL_SECONDS, REDIS_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# compare-and-delete in one Lua call: Redis runs scripts atomically, so nobody
# can take the key over between our GET and DEL
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    Short per-user cart mutex.

    - acquire: SET cart:{user}:lock <token> NX EX ttl
    - release: only by the token holder (Lua)
    - the TTL frees the key if a worker dies while holding it
    """

    def __init__(
        self,
        url: str | None = None,
        ttl: int = CART_LOCK_TTL_SECONDS,
        attempts: int = CART_LOCK_ATTEMPTS,
        client: redis.Redis | None = None,
    ):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl
        self.attempts = attempts

    @staticmethod
    def _key(user_id: str) -> str:
        return f"cart:{user_id}:lock"

    @redis_retry()
    def try_acquire(self, user_id: str, token: str) -> bool:
        return bool(
            self.redis.set(
                name=self._key(user_id),
                value=token,
                nx=True,
                ex=self.ttl,
            )
        )

    def acquire(self, user_id: str) -> str | None:
        """Returns the lock token, or None if the cart stayed locked."""
        token = uuid.uuid4().hex

        @poll_until_true(self.attempts)
        def _attempt():
            return self.try_acquire(user_id, token)

        if _attempt():
            logger.debug(f"Acquired {self._key(user_id)}")
            return token
        return None

    @redis_retry()
    def release(self, user_id: str, token: str) -> bool:
        res = self.redis.eval(_RELEASE_LUA, 1, self._key(user_id), token)
        return bool(res)

    @contextmanager
    def hold(self, user_id: str):
        try:
            token = self.acquire(user_id)
        except RedisError as e:
            logger.error(f"Cart lock unavailable for user {user_id}: {e}")
            raise StoreUnavailable("Cart lock service unavailable") from e

        if token is None:
            raise CartBusy()

        try:
            yield
        finally:
            try:
                self.release(user_id, token)
            except RedisError as e:
                # the TTL will clear it
                logger.warning(f"Failed to release cart lock for user {user_id}: {e}")
