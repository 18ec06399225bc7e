"""
Unit Tests: Error Classifier and Error Taxonomy

Tests:
    - Expected statuses yield no error
    - Vendor codes from XML and JSON error bodies
    - Failure message format
    - Status-based predicates
"""

from osapi.core.errors import (
    AuthenticationError,
    ConfigurationError,
    ErrorCode,
    ResponseSummary,
    StorageRequestError,
    is_bad_request,
    is_not_found,
)
from osapi.protocol.classifier import find_error, local_name, summarize
from osapi.transport.agent import TransportResponse

S3_ERROR = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    "<Error><Code>NoSuchKey</Code><Message>The specified key does not exist.</Message>"
    "<RequestId>tx-1</RequestId></Error>"
)


def response(status, body=None, content_type="", message="") -> TransportResponse:
    return TransportResponse(
        status_code=status,
        status_message=message,
        headers={"content-type": content_type} if content_type else {},
        body=body,
    )


class TestFindError:
    """Tests for find_error()."""

    def test_expected_status(self):
        assert find_error("OBJECT_GET", {200, 204}, response(204)) is None

    def test_xml_vendor_code(self):
        error = find_error(
            "OBJECT_GET",
            {200},
            response(404, S3_ERROR, "application/xml", "Not Found"),
            {"bucket": "photos", "name": "cat.jpg"},
        )
        assert isinstance(error, StorageRequestError)
        assert error.code is ErrorCode.REQUEST_UNEXPECTED_STATUS
        assert error.status_code == 404
        assert error.vendor_code == "NoSuchKey"
        assert error.response.vendor_message == "The specified key does not exist."
        assert error.action == "OBJECT_GET"
        assert error.meta["name"] == "cat.jpg"
        assert error.message == "failed OBJECT_GET cat.jpg 404 Not Found"

    def test_namespaced_xml(self):
        body = '<Error xmlns="http://s3.amazonaws.com/doc/2006-03-01/"><Code>AccessDenied</Code></Error>'
        summary = summarize(response(403, body, "application/xml"))
        assert summary.vendor_code == "AccessDenied"
        assert summary.vendor_message is None

    def test_json_vendor_code(self):
        summary = summarize(response(409, {"code": "Conflict", "message": "busy"}, "application/json"))
        assert (summary.vendor_code, summary.vendor_message) == ("Conflict", "busy")

    def test_json_nested_error(self):
        summary = summarize(response(400, {"error": {"Code": "Bad", "Message": "nope"}}, "application/json"))
        assert summary.vendor_code == "Bad"

    def test_unparseable_xml(self):
        summary = summarize(response(500, "<Error><Code>", "application/xml"))
        assert summary.vendor_code is None
        assert summary.status_code == 500

    def test_unnamed_operation(self):
        error = find_error("SERVICE_GET", {200}, response(500, message="Internal Server Error"))
        assert error.message == "failed SERVICE_GET - 500 Internal Server Error"

    def test_local_name(self):
        assert local_name("{urn:x}Code") == "Code"
        assert local_name("Code") == "Code"


class TestPredicates:
    """Classification looks at the status only, never at the error type."""

    def test_not_found(self):
        summary = ResponseSummary(status_code=404, status_message="Not Found")
        assert is_not_found(StorageRequestError.unexpected_status("OBJECT_GET", None, summary))
        assert is_not_found(AuthenticationError.rejected(summary))

    def test_bad_request(self):
        summary = ResponseSummary(status_code=400, status_message="Bad Request")
        error = StorageRequestError.unexpected_status("OBJECT_PUT", None, summary)
        assert is_bad_request(error)
        assert not is_not_found(error)

    def test_no_response(self):
        error = ConfigurationError.option_absent("tempurlkey")
        assert not is_not_found(error)
        assert not is_bad_request(error)
        assert not is_not_found(ValueError("404"))
        assert not is_not_found(None)


class TestErrorShape:
    """Tests for OsapiError serialization."""

    def test_to_dict(self):
        summary = ResponseSummary(status_code=401, status_message="Unauthorized")
        error = AuthenticationError.rejected(summary)
        data = error.to_dict()
        assert data["code"] == "AUTH_REJECTED"
        assert data["code_value"] == 2001
        assert data["response"]["status_code"] == 401
        assert data["message"] == "failed AUTH - 401 Unauthorized"
        assert len(data["error_id"]) == 36

    def test_error_ids_unique(self):
        a = ConfigurationError.option_absent("key")
        b = ConfigurationError.option_absent("key")
        assert a.error_id != b.error_id
