from ._exception_types import (
    DECODE_EXCEPTIONS,
    TRANSPORT_EXCEPTIONS,
    ErrorCategory,
    ErrorCode,
    ErrorDomain,
    ExceptionGroup,
)

__all__ = [
    "DECODE_EXCEPTIONS",
    "TRANSPORT_EXCEPTIONS",
    "ErrorCategory",
    "ErrorCode",
    "ErrorDomain",
    "ExceptionGroup",
]
