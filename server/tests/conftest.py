import os


def _set_default(key: str, value: str) -> None:
    os.environ.setdefault(key, value)


_set_default("CACHE_MODE", "memory")
_set_default("REDIS_URL", "redis://localhost:6379/0")
_set_default("BINDING_TTL_SECONDS", "3600")
_set_default("VISION_BASE_URL", "https://vision.example.com")
_set_default("DISABLE_OTEL", "true")
