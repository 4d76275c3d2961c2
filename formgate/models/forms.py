"""Pydantic models for forms, fields and submissions read from the store.

These models describe the minimal read contract formgate needs from the
host platform's form store. They carry raw, untyped field values; shaping
them for API output is the job of ``formgate.service.transform``.

Model Categories:
    - FieldDescriptor: Metadata for one form field
    - FormPage: Ordered group of fields
    - Form: A form definition with pages and fields
    - FileAsset: An uploaded file attached to a submission
    - Submission: One stored submission with raw field values
    - SubmissionQuery: Filters and pagination for submission listing

Dependencies:
    - pydantic: Data validation and serialization
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldDescriptor(BaseModel):
    """External metadata for one form field.

    Attributes:
        handle: Stable field handle, key of the submission value
        label: Human-readable label
        type_tag: Field type tag (e.g. "Number", "Dropdown", "Html")
        required: Whether the form requires a value
        instructions: Optional help text
        min_value / max_value / rating_type: Rating field settings, when present
    """

    handle: str
    label: str = ""
    type_tag: str = "SingleLineText"
    required: bool = False
    instructions: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    rating_type: Optional[str] = None

    @field_validator("handle")
    @classmethod
    def validate_handle(cls, v):
        if not v or not v.strip():
            raise ValueError("Field handle cannot be empty")
        return v.strip()


class FormPage(BaseModel):
    id: int
    name: str
    sort_order: int = 0
    fields: list[FieldDescriptor] = Field(default_factory=list)


class Form(BaseModel):
    """A form definition.

    ``fields`` is derived from ``pages`` when not given explicitly, so a
    form can be declared page by page.
    """

    id: int
    uid: str
    handle: str
    title: str
    status: str = "enabled"
    date_created: datetime
    date_updated: datetime
    pages: list[FormPage] = Field(default_factory=list)
    fields: list[FieldDescriptor] = Field(default_factory=list)

    def model_post_init(self, __context: Any) -> None:
        if not self.fields and self.pages:
            self.fields = [field for page in self.pages for field in page.fields]

    def field_by_handle(self, handle: str) -> Optional[FieldDescriptor]:
        for field in self.fields:
            if field.handle == handle:
                return field
        return None


class FileAsset(BaseModel):
    """An uploaded file referenced by a FileUpload field value."""

    filename: str
    url: Optional[str] = None


class Submission(BaseModel):
    """A stored form submission with raw field values keyed by handle."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: int
    uid: str
    form_id: int
    title: Optional[str] = None
    status: str = "live"
    date_created: datetime
    date_updated: datetime
    is_incomplete: bool = False
    is_spam: bool = False
    values: dict[str, Any] = Field(default_factory=dict)


class SubmissionQuery(BaseModel):
    """Filters and pagination for listing submissions.

    A ``status`` of "all" (or None) disables status filtering. Date bounds
    are inclusive and compared against ``date_created``.
    """

    form_id: Optional[int] = None
    status: Optional[str] = "live"
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = Field(100, ge=0)
    offset: int = Field(0, ge=0)
