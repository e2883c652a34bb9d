import uuid
from typing import Optional

from scansubmit.settings import settings
from scansubmit.store.redis_conn import get_redis
from scansubmit.observability.logging import log


class RedisEnrollmentIdentifiers:
    """
    Holds the "pending enrollment" identifier sent as externalDatabaseRefID.
    A fresh identifier is minted on first read; clearing is idempotent.
    """

    def __init__(self, key: Optional[str] = None, prefix: Optional[str] = None):
        self.key = key or settings.ENROLLMENT_ID_KEY
        self.prefix = settings.ENROLLMENT_ID_PREFIX if prefix is None else prefix

    def new_identifier(self) -> str:
        return f"{self.prefix}{uuid.uuid4().hex}"

    def get_current_identifier(self) -> str:
        r = get_redis()
        current = r.get(self.key)
        if current:
            return str(current)
        candidate = self.new_identifier()
        # NX keeps a concurrent writer's identifier if one raced us
        if r.set(self.key, candidate, nx=True):
            log(event="enrollment_identifier_created", key=self.key, identifier=candidate)
            return candidate
        return str(r.get(self.key) or candidate)

    def set_current_identifier(self, identifier: str) -> None:
        r = get_redis()
        r.set(self.key, identifier)

    def clear_current_identifier(self) -> None:
        r = get_redis()
        removed = r.delete(self.key)
        log(event="enrollment_identifier_cleared", key=self.key, removed=int(removed or 0))
