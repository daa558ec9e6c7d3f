"""Error kinds raised by the resolution and binding layer."""
from typing import Iterable, List


class RoleTagError(Exception):
    """Base class; ``code`` and ``status_code`` drive the HTTP translation."""

    code = "InternalError"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgumentError(RoleTagError):
    code = "InvalidArgument"
    status_code = 409


class UnresolvedReferenceError(InvalidArgumentError):
    """One or more supplied names could not be matched."""

    def __init__(self, kind: str, names: Iterable[str]):
        self.kind = kind
        self.names: List[str] = list(names)
        super().__init__(f"{kind}(s) {', '.join(self.names)} not found")


class TagWriteError(InvalidArgumentError):
    """Machine role-tag write failed. The cause is never exposed."""

    def __init__(self):
        super().__init__("Invalid role-tag")


class NotFoundError(RoleTagError):
    code = "ResourceNotFound"
    status_code = 404


class NotAuthorizedError(RoleTagError):
    code = "NotAuthorized"
    status_code = 403


class BackendUnavailableError(RoleTagError):
    code = "ServiceUnavailable"
    status_code = 503
