import asyncio

import aiohttp
import orjson
import pytest

from src.common.exceptions.base import (
    APIError,
    ConfigError,
    ProtocolError,
    RetryExhaustedError,
    TransportError,
)
from src.common.exceptions.exception_rule import classify_exception, is_retryable
from src.core.types import ErrorCode, ErrorDomain


def _decode_error() -> Exception:
    try:
        orjson.loads(b"<html>")
    except orjson.JSONDecodeError as e:
        return e
    raise AssertionError("expected decode failure")


@pytest.mark.parametrize(
    ("err", "expected"),
    [
        (asyncio.CancelledError(), (ErrorDomain.SCHEDULER, ErrorCode.CANCELLED, False)),
        (asyncio.TimeoutError(), (ErrorDomain.TRANSPORT, ErrorCode.TIMEOUT, True)),
        (aiohttp.ClientConnectionError("refused"), (ErrorDomain.TRANSPORT, ErrorCode.CONNECT_FAILED, True)),
        (ConnectionResetError(), (ErrorDomain.TRANSPORT, ErrorCode.CONNECT_FAILED, True)),
        (ValueError("boom"), (ErrorDomain.UNKNOWN, ErrorCode.UNKNOWN_ERROR, False)),
    ],
)
def test_classify_builtin_exceptions(err: BaseException, expected: tuple) -> None:
    assert classify_exception(err) == expected


def test_decode_errors_are_protocol_failures() -> None:
    assert classify_exception(_decode_error()) == (
        ErrorDomain.PROTOCOL,
        ErrorCode.INVALID_BODY,
        True,
    )


def test_collector_errors_use_their_own_fields() -> None:
    assert classify_exception(TransportError("down")) == (
        ErrorDomain.TRANSPORT,
        ErrorCode.CONNECT_FAILED,
        True,
    )
    assert classify_exception(APIError("bad", api_error_code=431))[0] is ErrorDomain.API
    assert classify_exception(ProtocolError("no envelope", error_code=ErrorCode.MISSING_ENVELOPE)) == (
        ErrorDomain.PROTOCOL,
        ErrorCode.MISSING_ENVELOPE,
        True,
    )


def test_terminal_errors_are_not_retryable() -> None:
    assert not is_retryable(ConfigError("API Key must be provided (see CloudStack UI)!"))
    assert not is_retryable(RetryExhaustedError("ERROR: down", command="listZones", attempts=4))


def test_to_dict_carries_structured_fields() -> None:
    cause = ConnectionRefusedError("refused")
    err = RetryExhaustedError(
        "ERROR: refused",
        original_exception=cause,
        error_domain=ErrorDomain.TRANSPORT,
        command="listAlerts",
        attempts=4,
    )

    payload = err.to_dict()

    assert payload["error"] == "ERROR: refused"
    assert payload["error_type"] == "RetryExhaustedError"
    assert payload["error_domain"] == "transport"
    assert payload["error_code"] == ErrorCode.RETRY_EXHAUSTED.value
    assert payload["original_error_type"] == "ConnectionRefusedError"
    assert payload["command"] == "listAlerts"
    assert payload["attempts"] == 4


def test_api_error_to_dict_includes_server_code() -> None:
    assert APIError("unable", api_error_code=530).to_dict()["api_error_code"] == 530
