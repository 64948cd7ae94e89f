"""Application error types for provisioning."""

import inspect
from enum import Enum
from uuid import uuid4


def format_error(ex: BaseException) -> str:
    from traceback import TracebackException

    return "".join(TracebackException.from_exception(ex).format())


class AppErrorCode(str, Enum):
    E_BINARY_UNAVAILABLE = "E_BINARY_UNAVAILABLE"
    E_PROVIDER_CALL_FAILED = "E_PROVIDER_CALL_FAILED"
    E_LAUNCH_FAILED = "E_LAUNCH_FAILED"
    E_UNCONFIGURED_ROOM = "E_UNCONFIGURED_ROOM"
    E_STALE_GENERATION = "E_STALE_GENERATION"
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"


class AppError(Exception):
    """Error raised by provisioning components.

    Carries an error code, a short residue id for correlating log lines,
    and the call site that raised it.
    """

    def __init__(self, errcode: AppErrorCode | str, errmesg: str = ""):
        self.errcode = errcode.value if isinstance(errcode, AppErrorCode) else errcode
        self.errmesg = errmesg or "We are sorry, an error occurred."
        self.erresid = uuid4().hex[:10]

        caller_frame = inspect.stack()[1]
        module = inspect.getmodule(caller_frame.frame)
        module_name = (
            module.__name__ if module and getattr(module, "__name__", None) else caller_frame.filename
        )
        self.caller_info = f"{module_name}:{caller_frame.function}:{caller_frame.lineno}"

        super().__init__(f"{self.errcode}: {self.errmesg}")
