import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    # Verification service
    SCAN_SERVICE_BASE_URL: str = os.getenv("SCAN_SERVICE_BASE_URL", "http://localhost:8080")
    ENROLLMENT_PATH: str = os.getenv("ENROLLMENT_PATH", "/enrollment-3d")
    DEVICE_KEY_IDENTIFIER: str = os.getenv("DEVICE_KEY_IDENTIFIER", "")
    USER_AGENT_PREFIX: str = os.getenv("USER_AGENT_PREFIX", "scansubmit")
    CLIENT_VERSION: str = os.getenv("CLIENT_VERSION", "0.1.0")
    # Upper bound for the whole request; the stall warning below is advisory only
    SUBMIT_TIMEOUT_SEC: float = float(os.getenv("SUBMIT_TIMEOUT_SEC", "60"))
    UPLOAD_CHUNK_BYTES: int = int(os.getenv("UPLOAD_CHUNK_BYTES", "65536"))

    # Upload UX
    STALL_WARNING_SEC: float = float(os.getenv("STALL_WARNING_SEC", "6"))
    STALL_MESSAGE: str = os.getenv("STALL_MESSAGE", "Still Uploading...")
    SUCCESS_MESSAGE: str = os.getenv("SUCCESS_MESSAGE", "Face Scanned\n3D Liveness Proven")

    # Storage / queue
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RQ_QUEUE_NAME: str = os.getenv("RQ_QUEUE_NAME", "completion")
    ENROLLMENT_ID_KEY: str = os.getenv("ENROLLMENT_ID_KEY", "enrollment:current_identifier")
    ENROLLMENT_ID_PREFIX: str = os.getenv("ENROLLMENT_ID_PREFIX", "browser_sample_app_")
    # Keep the last completion report per session for the admin API
    STORE_LAST_COMPLETION_REPORT: bool = os.getenv("STORE_LAST_COMPLETION_REPORT", "true").lower() == "true"
    COMPLETION_REPORT_TTL_SEC: int = int(os.getenv("COMPLETION_REPORT_TTL_SEC", "86400"))

    # Observability
    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    ENABLE_METRICS: bool = os.getenv("ENABLE_METRICS", "true").lower() == "true"

    # Admin API
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
