import pytest
from botocore.exceptions import (
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from conftest import client_error
from filegate.core.errors import (
    BackendUnavailable,
    ConfigurationError,
    NotFound,
    SizeExceeded,
)
from filegate.services.error_translation import translate_backend_error


@pytest.mark.parametrize(
    ("code", "status", "expected"),
    [
        ("NoSuchKey", 404, NotFound),
        ("404", 404, NotFound),
        ("NoSuchBucket", 404, ConfigurationError),
        ("AccessDenied", 403, ConfigurationError),
        ("InvalidAccessKeyId", 403, ConfigurationError),
        ("SignatureDoesNotMatch", 403, ConfigurationError),
        ("EntityTooLarge", 400, SizeExceeded),
        ("SlowDown", 503, BackendUnavailable),
        ("RequestTimeout", 400, BackendUnavailable),
        ("InternalError", 500, BackendUnavailable),
        ("SomethingNew", 502, BackendUnavailable),
        ("SomethingElse", 400, BackendUnavailable),
    ],
)
def test_client_errors_map_to_closed_taxonomy(code, status, expected):
    original = client_error(code, status)
    error = translate_backend_error(original, "read")
    assert type(error) is expected
    assert error.backend_code == code
    assert error.operation == "read"
    assert error.original is original


def test_backend_detail_is_not_the_user_message():
    error = translate_backend_error(client_error("AccessDenied", 403), "upload")
    assert "from backend" not in error.message
    assert error.message == "Access denied to storage resource"


def test_unknown_code_gets_generic_message():
    error = translate_backend_error(client_error("Weird", 400), "delete")
    assert error.message == "Storage delete operation failed"


@pytest.mark.parametrize(
    ("exc", "expected", "retryable"),
    [
        (NoCredentialsError(), ConfigurationError, False),
        (ConnectTimeoutError(endpoint_url="https://s3.test"), BackendUnavailable, True),
        (ReadTimeoutError(endpoint_url="https://s3.test"), BackendUnavailable, True),
        (EndpointConnectionError(endpoint_url="https://s3.test"), BackendUnavailable, True),
        (ConnectionRefusedError("refused"), BackendUnavailable, True),
    ],
)
def test_transport_errors(exc, expected, retryable):
    error = translate_backend_error(exc, "presign")
    assert type(error) is expected
    assert error.retryable is retryable


def test_domain_errors_pass_through():
    error = NotFound()
    assert translate_backend_error(error, "read") is error


def test_non_backend_exceptions_are_not_translated():
    with pytest.raises(TypeError):
        translate_backend_error(ValueError("boom"), "read")
