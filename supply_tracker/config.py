import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


class Config:
    BASE_DIR = os.path.dirname(os.path.dirname(__file__))
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_DIR = None if DATABASE_URL else os.path.join(BASE_DIR, "database")
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "supply_tracker.db")

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-supply-tracker")
    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    DOCUMENT_STORE = os.environ.get("DOCUMENT_STORE", "memory")
    PURCHASE_REQUESTS_COLLECTION = os.environ.get("PURCHASE_REQUESTS_COLLECTION", "purchaseRequests")
    MIRROR_AUTOSTART = _bool_env("MIRROR_AUTOSTART", True)
    SEED_DEMO_DATA = _bool_env("SEED_DEMO_DATA", True)
    FEED_POLL_INTERVAL_SECONDS = _float_env("FEED_POLL_INTERVAL_SECONDS", 2.0)
    MEMORY_STORE_DEFERRED = _bool_env("MEMORY_STORE_DEFERRED", True)
    FEED_POLL_IN_BACKGROUND = _bool_env("FEED_POLL_IN_BACKGROUND", True)

    SUPPLY_API_LATENCY_ENABLED = _bool_env("SUPPLY_API_LATENCY_ENABLED", True)
    SUPPLY_API_LATENCY_SCALE = _float_env("SUPPLY_API_LATENCY_SCALE", 1.0)
    SUPPLY_API_BULK_LIMIT = _int_env("SUPPLY_API_BULK_LIMIT", 500)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and self.SECRET_KEY == "dev-secret-supply-tracker":
            raise RuntimeError("SECRET_KEY is not safe for production.")
        if env == "production" and self.DOCUMENT_STORE == "sql" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is required for the sql document store in production.")
