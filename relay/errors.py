"""
Error taxonomy for the relay.

Credential problems (invalid_pp, invalid_token, bad_sig, expired) are returned
as values by the token codec and never raised. Everything here is raised by
services and routes and rendered as {"ok": false, "error": <code>}.
"""
from fastapi import Request
from fastapi.responses import JSONResponse


class RelayError(Exception):
    code = "internal_error"
    status_code = 500

    def __init__(self, code: str | None = None, status_code: int | None = None) -> None:
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.code)


class InvalidRequest(RelayError):
    code = "invalid_request"
    status_code = 400


class AccessDenied(RelayError):
    """Raised by the download route when the access gate refuses a request."""

    @classmethod
    def for_code(cls, code: str) -> "AccessDenied":
        return cls(code, 401 if code == "pin_required" else 402)


class EmptyPackageError(RelayError):
    code = "empty_package"
    status_code = 404


class TransferExpired(RelayError):
    code = "transfer_expired"
    status_code = 410


class StorageFailure(RelayError):
    """A storage operation failed; code names the operation (upload_failed, transfer_list_failed, ...)."""

    status_code = 500


class PresignUnsupported(RelayError):
    code = "presign_unsupported"
    status_code = 501


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.code})
