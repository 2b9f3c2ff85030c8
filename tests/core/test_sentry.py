"""
Tests for Sentry helpers (no DSN configured in tests).
"""
from backoffice.core.sentry import capture_exception, capture_message, filter_sensitive_data


class TestFilterSensitiveData:
    def test_filters_auth_headers_and_documents(self):
        event = {
            "request": {
                "headers": {"authorization": "Bearer abc", "apikey": "k", "accept": "application/json"},
                "data": {"clientDoc": "12345678901", "clientName": "Maria"},
            }
        }

        filtered = filter_sensitive_data(event, {})

        assert filtered["request"]["headers"]["authorization"] == "[Filtered]"
        assert filtered["request"]["headers"]["apikey"] == "[Filtered]"
        assert filtered["request"]["headers"]["accept"] == "application/json"
        assert filtered["request"]["data"]["clientDoc"] == "[Filtered]"
        assert filtered["request"]["data"]["clientName"] == "Maria"

    def test_event_without_request(self):
        assert filter_sensitive_data({"message": "x"}, {}) == {"message": "x"}


class TestCaptureWithoutDsn:
    def test_capture_is_noop(self):
        assert capture_exception(RuntimeError("boom"), {"contract_id": "1"}) is None
        assert capture_message("orphaned artifact", level="error") is None
