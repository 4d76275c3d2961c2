"""Global test configuration and fixtures."""

from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient

from formgate.auth.authorizer import RequestAuthorizer
from formgate.auth.key_registry import KeyRegistry
from formgate.auth.rate_limiter import RateLimiter
from formgate.config import Settings
from formgate.container import configure_services
from formgate.models.forms import FieldDescriptor, FileAsset, Form, FormPage, Submission
from formgate.store import InMemoryFormStore

PRIMARY_KEY = "primary_key_0123456789"
LIMITED_KEY = "limited_key"


@pytest.fixture
def settings() -> Settings:
    """Development settings with both configured keys and the per-IP ceiling off."""
    return Settings(
        environment="development",
        dev_mode=False,
        primary_key=PRIMARY_KEY,
        limited_key=LIMITED_KEY,
        ip_rate_limit_enabled=False,
    )


@pytest.fixture
def registry(settings) -> KeyRegistry:
    return KeyRegistry(settings)


@pytest.fixture
def limiter() -> RateLimiter:
    return RateLimiter()


@pytest.fixture
def authorizer(registry, limiter) -> RequestAuthorizer:
    return RequestAuthorizer(registry, limiter, window_seconds=3600)


def _ts(day: int, hour: int = 12) -> datetime:
    return datetime(2025, 1, day, hour, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def contact_form() -> Form:
    return Form(
        id=1,
        uid="form-uid-1",
        handle="contactForm",
        title="Contact Form",
        date_created=_ts(1),
        date_updated=_ts(2),
        pages=[
            FormPage(
                id=10,
                name="Page 1",
                sort_order=1,
                fields=[
                    FieldDescriptor(handle="intro", label="Intro", type_tag="Html"),
                    FieldDescriptor(handle="yourName", label="Your Name", type_tag="Name", required=True),
                    FieldDescriptor(handle="email", label="Email", type_tag="Email", required=True),
                    FieldDescriptor(handle="age", label="Age", type_tag="Number"),
                    FieldDescriptor(handle="topics", label="Topics", type_tag="Checkboxes"),
                ],
            ),
            FormPage(
                id=11,
                name="Page 2",
                sort_order=2,
                fields=[
                    FieldDescriptor(handle="visitDate", label="Visit Date", type_tag="Date"),
                    FieldDescriptor(handle="attachments", label="Attachments", type_tag="FileUpload"),
                    FieldDescriptor(
                        handle="satisfaction",
                        label="Satisfaction",
                        type_tag="Rating",
                        min_value=1,
                        max_value=5,
                        rating_type="star",
                    ),
                ],
            ),
        ],
    )


@pytest.fixture
def survey_form() -> Form:
    return Form(
        id=2,
        uid="form-uid-2",
        handle="survey",
        title="Survey",
        status="disabled",
        date_created=_ts(3),
        date_updated=_ts(3),
        fields=[FieldDescriptor(handle="answer", label="Answer", type_tag="Dropdown")],
    )


@pytest.fixture
def store(contact_form, survey_form) -> InMemoryFormStore:
    """Store with two forms and a handful of contact form submissions."""
    submissions = [
        Submission(
            id=100,
            uid="sub-100",
            form_id=1,
            title="First",
            date_created=_ts(5),
            date_updated=_ts(5),
            values={
                "intro": "<p>Hello</p>",
                "yourName": {"firstName": "Jane", "lastName": "Doe"},
                "email": "jane@example.com",
                "age": "42",
                "topics": [{"value": "sales", "label": "Sales"}, "support"],
                "visitDate": date(2025, 1, 4),
                "attachments": [FileAsset(filename="cv.pdf", url="https://cdn.example.com/cv.pdf")],
                "satisfaction": 4,
                "unknownHandle": "ignored",
            },
        ),
        Submission(
            id=101,
            uid="sub-101",
            form_id=1,
            title="Second",
            date_created=_ts(10),
            date_updated=_ts(10),
            values={"email": "john@example.com", "age": "not a number"},
        ),
        Submission(
            id=102,
            uid="sub-102",
            form_id=1,
            title="Spam",
            date_created=_ts(11),
            date_updated=_ts(11),
            is_spam=True,
            values={"email": "spam@example.com"},
        ),
        Submission(
            id=103,
            uid="sub-103",
            form_id=1,
            title="Pending",
            status="pending",
            date_created=_ts(12),
            date_updated=_ts(12),
            values={"email": "pending@example.com"},
        ),
    ]
    return InMemoryFormStore(forms=[contact_form, survey_form], submissions=submissions)


@pytest.fixture
def container(settings, store, limiter):
    return configure_services(settings=settings, store=store, limiter=limiter)


@pytest.fixture
def api_client(container):
    """Create FastAPI test client with a fully configured container."""
    from formgate.service.main import create_app

    return TestClient(create_app(container))


@pytest.fixture
def primary_headers():
    return {"X-API-Key": PRIMARY_KEY}


@pytest.fixture
def limited_headers():
    return {"X-API-Key": LIMITED_KEY}
