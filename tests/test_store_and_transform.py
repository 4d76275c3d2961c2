"""Test the in-memory form store and response shaping."""

from datetime import datetime, timezone

from formgate.fields.normalize import FieldValueTransformer
from formgate.models.forms import FieldDescriptor, Form, Submission, SubmissionQuery
from formgate.service.transform import transform_field_value, transform_form, transform_submission
from formgate.store import InMemoryFormStore


class TestInMemoryFormStore:
    """Test store queries."""

    def test_list_forms_default_enabled_only(self, store):
        forms, total = store.list_forms()

        assert total == 1
        assert [f.handle for f in forms] == ["contactForm"]

    def test_list_forms_all(self, store):
        forms, total = store.list_forms("all", 10, 0)

        assert total == 2
        assert [f.id for f in forms] == [1, 2]

    def test_list_forms_pagination(self, store):
        forms, total = store.list_forms("all", 1, 1)

        assert total == 2
        assert [f.id for f in forms] == [2]

    def test_get_form_by_handle(self, store):
        assert store.get_form_by_handle("survey").id == 2
        assert store.get_form_by_handle("missing") is None

    def test_list_submissions_excludes_spam_and_sorts_newest_first(self, store):
        submissions, total = store.list_submissions(SubmissionQuery(form_id=1))

        assert total == 2
        assert [s.id for s in submissions] == [101, 100]

    def test_list_submissions_status_all(self, store):
        submissions, total = store.list_submissions(SubmissionQuery(form_id=1, status="all"))

        assert total == 3
        assert 102 not in {s.id for s in submissions}

    def test_list_submissions_date_bounds_inclusive(self, store):
        query = SubmissionQuery(
            date_from=datetime(2025, 1, 5, 12, 0, tzinfo=timezone.utc),
            date_to=datetime(2025, 1, 9),
        )
        submissions, total = store.list_submissions(query)

        assert total == 1
        assert submissions[0].id == 100

    def test_list_submissions_pagination_keeps_total(self, store):
        submissions, total = store.list_submissions(SubmissionQuery(limit=1, offset=1))

        assert total == 2
        assert [s.id for s in submissions] == [100]

    def test_count_submissions(self, store):
        assert store.count_submissions(1) == 4
        assert store.count_submissions(2) == 0


class TestTransformForm:
    """Test form shaping."""

    def test_summary(self, store, contact_form):
        data = transform_form(contact_form, store)

        assert data["handle"] == "contactForm"
        assert data["submissionCount"] == 4
        assert data["dateCreated"] == "2025-01-01T12:00:00+00:00"
        assert "fields" not in data

    def test_with_fields_and_pages(self, store, contact_form):
        data = transform_form(contact_form, store, include_fields=True)

        assert [f["handle"] for f in data["fields"]][:3] == ["intro", "yourName", "email"]
        assert data["fields"][1]["required"] is True
        assert [p["sortOrder"] for p in data["pages"]] == [1, 2]
        assert data["pages"][1]["fields"][0] == {"handle": "visitDate", "label": "Visit Date", "type": "Date"}


class TestTransformSubmission:
    """Test submission shaping."""

    def test_fields_normalized(self, store):
        data = transform_submission(store.get_submission(100), store, FieldValueTransformer())
        fields = data["fields"]

        assert data["formHandle"] == "contactForm"
        assert fields["yourName"]["value"]["fullName"] == "Jane Doe"
        assert fields["age"]["value"] == 42.0
        assert fields["topics"]["value"] == ["sales", "support"]
        assert fields["visitDate"]["value"] == "2025-01-04T00:00:00+00:00"
        assert fields["attachments"]["value"] == [
            {"filename": "cv.pdf", "url": "https://cdn.example.com/cv.pdf"}
        ]
        assert fields["email"] == {
            "label": "Email",
            "handle": "email",
            "type": "Email",
            "value": "jane@example.com",
        }

    def test_layout_and_unknown_fields_skipped(self, store):
        fields = transform_submission(store.get_submission(100), store, FieldValueTransformer())["fields"]

        assert "intro" not in fields
        assert "unknownHandle" not in fields

    def test_rating_metadata(self, store):
        rating = transform_submission(store.get_submission(100), store, FieldValueTransformer())["fields"]["satisfaction"]

        assert rating["minValue"] == "1"
        assert rating["maxValue"] == "5"
        assert rating["ratingType"] == "star"
        assert rating["value"] == "4"

    def test_rating_without_bounds(self):
        field = FieldDescriptor(handle="r", label="R", type_tag="Rating")

        entry = transform_field_value(field, 3, FieldValueTransformer())
        assert entry["minValue"] is None
        assert entry["maxValue"] is None

    def test_include_form(self, store):
        data = transform_submission(store.get_submission(100), store, FieldValueTransformer(), include_form=True)

        assert data["form"]["id"] == 1
        assert "fields" not in data["form"]

    def test_orphan_submission(self):
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        store = InMemoryFormStore(
            forms=[Form(id=1, uid="u", handle="h", title="T", date_created=now, date_updated=now)],
            submissions=[Submission(id=9, uid="s", form_id=99, date_created=now, date_updated=now, values={"a": 1})],
        )

        data = transform_submission(store.get_submission(9), store, FieldValueTransformer(), include_form=True)

        assert data["formHandle"] is None
        assert data["fields"] == {}
        assert "form" not in data
