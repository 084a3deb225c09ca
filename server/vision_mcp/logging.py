import hashlib
import logging
import sys
from typing import Any, Dict

import structlog

_SECRET_FIELDS = frozenset({"api_key", "credential", "access_token"})


def _add_app_context(_: Any, __: Any, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("service", "vision-mcp")
    return event_dict


def _redact_secrets(_: Any, __: Any, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for field in _SECRET_FIELDS.intersection(event_dict):
        event_dict[field] = "***"
    return event_dict


def session_fingerprint(session_id: str) -> str:
    """Short stable digest so log lines can be correlated without the raw id."""
    return hashlib.sha256(session_id.encode("utf-8")).hexdigest()[:12]


def configure_logging(level: int = logging.INFO) -> None:
    timestamper = structlog.processors.TimeStamper(fmt="iso")
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            timestamper,
            _add_app_context,
            _redact_secrets,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
