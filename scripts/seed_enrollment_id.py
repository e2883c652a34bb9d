"""
Seed (or rotate) the pending enrollment identifier in Redis so the next
submission is sent with a known externalDatabaseRefID.
Usage: python scripts/seed_enrollment_id.py [identifier]
"""
import os
import sys
import uuid
from redis import Redis

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
KEY = os.getenv("ENROLLMENT_ID_KEY", "enrollment:current_identifier")
PREFIX = os.getenv("ENROLLMENT_ID_PREFIX", "browser_sample_app_")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    identifier = argv[0] if argv else f"{PREFIX}{uuid.uuid4().hex}"
    r = Redis.from_url(REDIS_URL, decode_responses=True)
    r.set(KEY, identifier)
    print(f"Seeded {KEY} = {identifier}")
    return identifier


if __name__ == "__main__":
    main()
