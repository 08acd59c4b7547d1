import os
from functools import lru_cache


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}") from e


class Settings:
    """Library defaults, overridable through KIMTEN_* environment variables"""

    def __init__(self):
        self.memory_limit: int = _int_env("KIMTEN_MEMORY_LIMIT", 10)
        self.hops: int = _int_env("KIMTEN_HOPS", 10)
        self.context_char_limit: int = _int_env("KIMTEN_CONTEXT_CHAR_LIMIT", 4000)
        self.log_level: str = os.getenv("KIMTEN_LOG_LEVEL", "INFO")
        self.log_format: str = os.getenv("KIMTEN_LOG_FORMAT", "json")
        self.service_name: str = os.getenv("KIMTEN_SERVICE_NAME", "kimten")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
