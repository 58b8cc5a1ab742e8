"""
Explicit failure values returned across the storage and partner-API seams.

Store and client operations return either their success value or a Failure;
callers branch with isinstance() instead of catching exceptions, so a bad
database or partner response can never escape the webhook handler.
"""
from dataclasses import dataclass
from typing import Any, Optional


class FailureKind:
    STORAGE = "storage"
    HTTP_ERROR = "http_error"
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"
    INVALID_REQUEST = "invalid_request"


@dataclass(frozen=True)
class Failure:
    kind: str
    message: str
    status_code: Optional[int] = None
    body: Any = None

    @property
    def is_not_found(self) -> bool:
        return self.kind == FailureKind.NOT_FOUND

    def to_dict(self) -> dict:
        data = {"kind": self.kind, "message": self.message}
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.body is not None:
            data["body"] = self.body
        return data


def storage_failure(message: str) -> Failure:
    return Failure(kind=FailureKind.STORAGE, message=message)
