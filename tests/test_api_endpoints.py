"""Test the REST endpoints end to end."""

import time
from unittest.mock import patch

from fastapi.testclient import TestClient

from formgate.auth.key_registry import StaticKeyProvider
from formgate.auth.models import READ_FORMS, READ_SUBMISSIONS, ApiKeyRecord
from formgate.auth.rate_limiter import RateLimiter
from formgate.config import Settings
from formgate.container import configure_services
from formgate.security.signature import compute_signature
from formgate.service.main import create_app

FORMS = "/api/v1/formie/forms"
SUBMISSIONS = "/api/v1/formie/submissions"


def _client(settings, store=None, records=None):
    container = configure_services(
        settings=settings,
        store=store,
        key_provider=StaticKeyProvider(records) if records else None,
        limiter=RateLimiter(),
    )
    return TestClient(create_app(container))


class TestPublicEndpoints:
    """Test endpoints reachable without a key."""

    def test_root(self, api_client):
        response = api_client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "running"
        assert "timestamp" in body["meta"]

    def test_unknown_route(self, api_client):
        response = api_client.get("/nowhere")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_preflight(self, api_client):
        response = api_client.options(FORMS, headers={"Origin": "https://app.example"})

        assert response.status_code == 204
        assert response.headers["Access-Control-Allow-Origin"] == "https://app.example"
        assert "X-API-Key" in response.headers["Access-Control-Allow-Headers"]


class TestAuthentication:
    """Test admission failures over HTTP."""

    def test_missing_key(self, api_client):
        response = api_client.get(FORMS)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "ApiKey"
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "UNAUTHORIZED"
        assert body["error"]["detail"] is None

    def test_invalid_key(self, api_client):
        response = api_client.get(FORMS, headers={"X-API-Key": "wrong"})

        assert response.status_code == 401

    def test_healthz_requires_key(self, api_client, primary_headers):
        assert api_client.get("/healthz").status_code == 401

        response = api_client.get("/healthz", headers=primary_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "healthy"

    def test_limited_key_forbidden_for_submissions(self, api_client, limited_headers):
        assert api_client.get(FORMS, headers=limited_headers).status_code == 200

        response = api_client.get(SUBMISSIONS, headers=limited_headers)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    def test_ip_not_whitelisted(self, store):
        client = _client(
            Settings(primary_key="pk", ip_whitelist=("10.0.0.0/24",), ip_rate_limit_enabled=False),
            store,
        )

        response = client.get(FORMS, headers={"X-API-Key": "pk"})
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "IP_NOT_ALLOWED"

    def test_rate_limit_headers_and_rejection(self, store):
        record = ApiKeyRecord(
            secret="sk_small_quota",
            name="Small",
            permissions=frozenset({READ_FORMS}),
            rate_limit=2,
        )
        client = _client(Settings(ip_rate_limit_enabled=False), store, [record])
        headers = {"X-API-Key": "sk_small_quota"}

        first = client.get(FORMS, headers=headers)
        assert first.status_code == 200
        assert first.headers["X-RateLimit-Limit"] == "2"
        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert int(first.headers["X-RateLimit-Reset"]) > time.time()

        assert client.get(FORMS, headers=headers).headers["X-RateLimit-Remaining"] == "0"

        rejected = client.get(FORMS, headers=headers)
        assert rejected.status_code == 429
        assert rejected.json()["error"]["code"] == "RATE_LIMITED"
        assert rejected.headers["X-RateLimit-Remaining"] == "0"

    def test_signed_requests_in_production(self, store):
        client = _client(Settings(environment="production", primary_key="pk_live", ip_rate_limit_enabled=False), store)

        unsigned = client.get(FORMS, headers={"X-API-Key": "pk_live"})
        assert unsigned.status_code == 401
        assert unsigned.json()["error"]["code"] == "INVALID_SIGNATURE"

        timestamp = str(int(time.time()))
        signed = client.get(
            FORMS,
            headers={
                "X-API-Key": "pk_live",
                "X-Timestamp": timestamp,
                "X-Signature": compute_signature("pk_live", "GET", FORMS, timestamp),
            },
        )
        assert signed.status_code == 200

    def test_signed_request_with_binary_body(self, store):
        """The signature covers the raw body bytes, even when they are not UTF-8."""
        client = _client(Settings(environment="production", primary_key="pk_live", ip_rate_limit_enabled=False), store)
        body = b"\xff\xfe binary"
        timestamp = str(int(time.time()))

        response = client.request(
            "GET",
            FORMS,
            content=body,
            headers={
                "X-API-Key": "pk_live",
                "X-Timestamp": timestamp,
                "X-Signature": compute_signature("pk_live", "GET", FORMS, timestamp, body),
            },
        )
        assert response.status_code == 200

    def test_per_ip_ceiling(self, store):
        client = _client(Settings(ip_rate_limit="2/minute"), store)

        assert client.get("/").status_code == 200
        assert client.get("/").status_code == 200
        assert client.get("/").status_code == 429

    def test_test_auth_endpoint(self, api_client, limited_headers):
        response = api_client.get("/api/test/formie/auth", headers=limited_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["authenticated"] is True
        assert data["apiKeyInfo"] == {
            "name": "Limited Access Key",
            "permissions": ["read_forms"],
            "rateLimit": 1000,
        }

    def test_access_logged_when_key_presented(self, api_client, primary_headers):
        with patch("formgate.service.main.log_api_access") as mock_log:
            api_client.get(FORMS, params={"limit": "5"}, headers=primary_headers)
            api_client.get("/")

        mock_log.assert_called_once()
        args = mock_log.call_args.args
        assert args[1] == FORMS
        assert args[3] == {"limit": "5"}
        assert args[4] == 200


class TestFormEndpoints:
    """Test form listing and detail."""

    def test_list_forms(self, api_client, primary_headers):
        body = api_client.get(FORMS, headers=primary_headers).json()

        assert body["meta"]["total"] == 1
        assert body["data"][0]["handle"] == "contactForm"
        assert body["data"][0]["submissionCount"] == 4

    def test_list_all_forms_paginated(self, api_client, primary_headers):
        body = api_client.get(FORMS, params={"status": "all", "limit": 1, "offset": 1}, headers=primary_headers).json()

        assert body["meta"]["total"] == 2
        assert body["meta"]["limit"] == 1
        assert body["meta"]["offset"] == 1
        assert [f["handle"] for f in body["data"]] == ["survey"]

    def test_get_form_by_id_and_handle(self, api_client, primary_headers):
        by_id = api_client.get(f"{FORMS}/1", headers=primary_headers).json()["data"]
        by_handle = api_client.get(f"{FORMS}/contactForm", headers=primary_headers).json()["data"]

        assert by_id["handle"] == by_handle["handle"] == "contactForm"
        assert len(by_id["pages"]) == 2
        assert by_id["fields"][0]["type"] == "Html"

    def test_get_form_not_found(self, api_client, primary_headers):
        response = api_client.get(f"{FORMS}/999", headers=primary_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"
        assert api_client.get(f"{FORMS}/missing", headers=primary_headers).status_code == 404

    def test_get_form_invalid_handle(self, api_client, primary_headers):
        response = api_client.get(f"{FORMS}/bad!handle", headers=primary_headers)

        assert response.status_code == 400

    def test_get_form_unicode_digit_reference(self, api_client, primary_headers):
        """Non-ASCII digits are not form IDs and are rejected as handles."""
        response = api_client.get(f"{FORMS}/²", headers=primary_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BAD_REQUEST"

    def test_invalid_query_parameter(self, api_client, primary_headers):
        response = api_client.get(FORMS, params={"limit": "lots"}, headers=primary_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BAD_REQUEST"


class TestSubmissionEndpoints:
    """Test submission listing and detail."""

    def test_list_submissions(self, api_client, primary_headers):
        body = api_client.get(SUBMISSIONS, headers=primary_headers).json()

        assert body["meta"]["total"] == 2
        assert [s["id"] for s in body["data"]] == [101, 100]

    def test_filter_by_form_handle(self, api_client, primary_headers):
        body = api_client.get(SUBMISSIONS, params={"formHandle": "survey"}, headers=primary_headers).json()

        assert body["meta"]["total"] == 0

    def test_unknown_form_handle(self, api_client, primary_headers):
        response = api_client.get(SUBMISSIONS, params={"formHandle": "nope"}, headers=primary_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BAD_REQUEST"

    def test_date_filters(self, api_client, primary_headers):
        params = {"formId": 1, "dateFrom": "2025-01-05", "dateTo": "2025-01-05"}
        body = api_client.get(SUBMISSIONS, params=params, headers=primary_headers).json()

        assert [s["id"] for s in body["data"]] == [100]

    def test_invalid_date(self, api_client, primary_headers):
        response = api_client.get(SUBMISSIONS, params={"dateFrom": "yesterday"}, headers=primary_headers)

        assert response.status_code == 400

    def test_status_all(self, api_client, primary_headers):
        body = api_client.get(SUBMISSIONS, params={"status": "all"}, headers=primary_headers).json()

        assert body["meta"]["total"] == 3

    def test_submission_detail(self, api_client, primary_headers):
        response = api_client.get(f"{SUBMISSIONS}/100", headers=primary_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["form"]["handle"] == "contactForm"
        assert data["fields"]["satisfaction"]["minValue"] == "1"
        assert data["fields"]["satisfaction"]["maxValue"] == "5"
        assert data["fields"]["age"]["value"] == 42.0
        assert "intro" not in data["fields"]

    def test_non_numeric_number_is_null(self, api_client, primary_headers):
        data = api_client.get(f"{SUBMISSIONS}/101", headers=primary_headers).json()["data"]

        assert data["fields"]["age"]["value"] is None

    def test_submission_not_found(self, api_client, primary_headers):
        response = api_client.get(f"{SUBMISSIONS}/555", headers=primary_headers)

        assert response.status_code == 404


class TestCorsHeaders:
    """Test CORS headers on regular responses."""

    def test_production_origin(self, store):
        client = _client(Settings(environment="production", ip_rate_limit_enabled=False), store)

        allowed = client.get("/", headers={"Origin": "https://alhatab.com.sa"})
        denied = client.get("/", headers={"Origin": "https://evil.example"})

        assert allowed.headers["Access-Control-Allow-Origin"] == "https://alhatab.com.sa"
        assert "Access-Control-Allow-Origin" not in denied.headers
