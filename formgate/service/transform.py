"""Shape forms and submissions into API response dictionaries."""

from typing import Any

from ..fields.normalize import FieldValueTransformer
from ..fields.types import FieldType, is_data_field
from ..models.forms import FieldDescriptor, Form, Submission
from ..store import FormStore


def _iso(value) -> str:
    return value.isoformat()


def _number_string(value) -> str:
    # Rating bounds are whole numbers in practice: render 1.0 as "1"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def field_summary(field: FieldDescriptor) -> dict[str, Any]:
    return {
        "handle": field.handle,
        "label": field.label,
        "type": field.type_tag,
        "required": field.required,
        "instructions": field.instructions,
    }


def transform_form(form: Form, store: FormStore, include_fields: bool = False) -> dict[str, Any]:
    data = {
        "id": form.id,
        "uid": form.uid,
        "handle": form.handle,
        "title": form.title,
        "status": form.status,
        "dateCreated": _iso(form.date_created),
        "dateUpdated": _iso(form.date_updated),
        "submissionCount": store.count_submissions(form.id),
    }

    if include_fields:
        data["fields"] = [field_summary(field) for field in form.fields]
        data["pages"] = [
            {
                "id": page.id,
                "name": page.name,
                "sortOrder": page.sort_order,
                "fields": [
                    {"handle": f.handle, "label": f.label, "type": f.type_tag}
                    for f in page.fields
                ],
            }
            for page in form.pages
        ]

    return data


def transform_field_value(field: FieldDescriptor, raw_value: Any, transformer: FieldValueTransformer) -> dict[str, Any]:
    """Build the output entry for one submitted field."""
    entry = {
        "label": field.label,
        "handle": field.handle,
        "type": field.type_tag,
        "value": transformer.normalize(field.type_tag, raw_value),
    }

    if field.type_tag == FieldType.RATING.value:
        entry["minValue"] = _number_string(field.min_value) if field.min_value is not None else None
        entry["maxValue"] = _number_string(field.max_value) if field.max_value is not None else None
        entry["ratingType"] = field.rating_type

    return entry


def transform_submission(
    submission: Submission,
    store: FormStore,
    transformer: FieldValueTransformer,
    include_form: bool = False,
) -> dict[str, Any]:
    """Shape a submission, normalizing every data field.

    Values whose handle is not a field of the form, and values of layout-only
    field types, are left out.
    """
    form = store.get_form(submission.form_id)

    data = {
        "id": submission.id,
        "uid": submission.uid,
        "formId": submission.form_id,
        "formHandle": form.handle if form else None,
        "title": submission.title,
        "status": submission.status,
        "dateCreated": _iso(submission.date_created),
        "dateUpdated": _iso(submission.date_updated),
        "fields": {},
    }

    if form is not None:
        for handle, raw_value in submission.values.items():
            field = form.field_by_handle(handle)
            if field is None or not is_data_field(field.type_tag):
                continue
            data["fields"][handle] = transform_field_value(field, raw_value, transformer)

        if include_form:
            data["form"] = transform_form(form, store)

    return data
