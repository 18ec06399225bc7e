"""
Shared fixtures: fixed clock, connection options and respx routers.

Every HTTP exchange is served by respx; no test touches the network.
"""

import httpx
import pytest
import respx

S3_ENDPOINT = "http://rgw.test:7480"
SWIFT_ENDPOINT = "http://swift.test:8080"
STORAGE_URL = "http://swift.test:8080/swift/v1"

# Tue, 14 Nov 2023 22:13:20 GMT
FIXED_NOW = 1700000000.0


def fixed_clock() -> float:
    return FIXED_NOW


@pytest.fixture
def s3_options():
    return {
        "endPoint": S3_ENDPOINT,
        "accessKey": "AK",
        "secretAccessKey": "SK",
        "bucket": "photos",
    }


@pytest.fixture
def swift_options():
    return {
        "endpoint": SWIFT_ENDPOINT,
        "subuser": "account:swift",
        "key": "secret",
        "container": "photos",
        "tempUrlKey": "tk",
    }


@pytest.fixture
def s3_api():
    with respx.mock(base_url=S3_ENDPOINT, assert_all_called=False) as router:
        yield router


@pytest.fixture
def swift_api():
    with respx.mock(assert_all_called=False) as router:
        yield router


def swift_auth_route(router, status: int = 204, headers=None):
    """Register the v1.0 auth endpoint on a respx router."""
    if headers is None:
        headers = {
            "X-Storage-Url": STORAGE_URL,
            "X-Storage-Token": "AUTH_tk123",
            "X-Auth-Token": "AUTH_tk123",
        }
    return router.get(f"{SWIFT_ENDPOINT}/auth/1.0").mock(
        return_value=httpx.Response(status, headers=headers)
    )


def xml_response(status: int, body: str, headers=None) -> httpx.Response:
    return httpx.Response(
        status,
        content=body.encode("utf-8"),
        headers={"Content-Type": "application/xml", **(headers or {})},
    )


def s3_error(status: int, code: str, message: str = "") -> httpx.Response:
    return xml_response(
        status,
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Error><Code>{code}</Code><Message>{message}</Message></Error>",
    )
