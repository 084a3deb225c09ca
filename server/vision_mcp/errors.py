from dataclasses import dataclass


@dataclass
class MCPError(Exception):
    code: str
    message: str
    status: int = 400
    correlation_id: str | None = None


class StoreUnavailable(MCPError):
    """The credential store could not be reached or did not answer in time."""

    def __init__(self, message: str = "Credential store unavailable") -> None:
        super().__init__("STORE_UNAVAILABLE", message, status=503)


class InvalidSessionId(MCPError):
    def __init__(self, message: str = "Invalid session id") -> None:
        super().__init__("INVALID_SESSION", message, status=400)


def as_error_payload(err: MCPError) -> dict:
    payload = {
        "error": {
            "code": err.code,
            "message": err.message,
        }
    }
    if err.correlation_id:
        payload["error"]["correlation_id"] = err.correlation_id
    return payload
