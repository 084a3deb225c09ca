from dataclasses import dataclass, field
from typing import Union

import structlog

from .errors import InvalidSessionId, MCPError, StoreUnavailable
from .logging import session_fingerprint
from .store import CredentialStore

logger = structlog.get_logger(__name__)

MAX_SESSION_ID_LENGTH = 256


@dataclass(frozen=True)
class Resolved:
    credential: str = field(repr=False)


@dataclass(frozen=True)
class Unauthenticated:
    reason: str = "no_binding"


@dataclass(frozen=True)
class BackendError:
    message: str


Resolution = Union[Resolved, Unauthenticated, BackendError]


def validate_session_id(session_id: str | None) -> str:
    """Reject ids the transport could not have issued.

    Session ids are opaque, but they must be non-empty visible ASCII
    (0x21-0x7E) and bounded in length.
    """
    if not isinstance(session_id, str) or not session_id:
        raise InvalidSessionId("Missing session id")
    if len(session_id) > MAX_SESSION_ID_LENGTH:
        raise InvalidSessionId("Session id too long")
    if any(not 0x21 <= ord(ch) <= 0x7E for ch in session_id):
        raise InvalidSessionId("Session id contains invalid characters")
    return session_id


class SessionResolver:
    def __init__(self, store: CredentialStore, binding_ttl_seconds: int | None = None) -> None:
        self._store = store
        self._ttl = binding_ttl_seconds or None

    async def resolve(self, session_id: str) -> Resolution:
        validate_session_id(session_id)
        try:
            credential = await self._store.get(session_id)
        except StoreUnavailable as exc:
            logger.error(
                "credential_resolve_failed",
                session=session_fingerprint(session_id),
                error=exc.message,
            )
            return BackendError(exc.message)
        if credential is None:
            logger.info("credential_not_bound", session=session_fingerprint(session_id))
            return Unauthenticated()
        return Resolved(credential)

    async def bind(self, session_id: str, credential: str) -> None:
        validate_session_id(session_id)
        if not isinstance(credential, str) or not credential.strip():
            raise MCPError("VALIDATION_ERROR", "API key must be a non-empty string")
        await self._store.set(session_id, credential.strip(), self._ttl)
        logger.info(
            "credential_bound", session=session_fingerprint(session_id), ttl=self._ttl
        )

    async def unbind(self, session_id: str) -> None:
        validate_session_id(session_id)
        await self._store.delete(session_id)
        logger.info("credential_unbound", session=session_fingerprint(session_id))
