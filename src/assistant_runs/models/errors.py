"""Error envelope returned by every endpoint"""

from typing import Any

from pydantic import BaseModel

ERROR_TYPES: dict[int, str] = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "validation_error",
    500: "internal_error",
}


class AgentProtocolError(BaseModel):
    """Error response body"""

    error: str
    message: str
    details: dict[str, Any] | None = None


def get_error_type(status_code: int) -> str:
    if status_code in ERROR_TYPES:
        return ERROR_TYPES[status_code]
    return "internal_error" if status_code >= 500 else "bad_request"
