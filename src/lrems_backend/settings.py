import os
import threading


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ["true", "1", "yes", "on"]


class BackendSettings:
    _instance = None
    _lock = threading.Lock()

    def __init__(self):
        self.DEBUG_MODE = os.environ.get("DEBUG_MODE", "development")
        self.DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./lrems.db")
        # Response cache
        self.ENABLE_CACHE = _env_flag("ENABLE_CACHE", "true")
        self.BOOKS_CACHE_TTL = int(os.environ.get("BOOKS_CACHE_TTL", "120"))
        self.MONITORING_CACHE_TTL = int(os.environ.get("MONITORING_CACHE_TTL", "120"))
        # Conditional responses
        self.RESPONSE_MAX_AGE = int(os.environ.get("RESPONSE_MAX_AGE", "120"))
        self.RESPONSE_STALE_WHILE_REVALIDATE = int(os.environ.get("RESPONSE_STALE_WHILE_REVALIDATE", "600"))
        # Path to the access policy override file (packaged default when unset)
        self.ACCESS_POLICY_CONFIG = os.environ.get("ACCESS_POLICY_CONFIG", None)

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(BackendSettings, cls).__new__(cls)
        return cls._instance

settings = BackendSettings()
