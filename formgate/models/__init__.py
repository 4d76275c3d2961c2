"""Data models for formgate."""

from .envelope import ErrorResponse, SuccessResponse, error, success
from .forms import FieldDescriptor, FileAsset, Form, FormPage, Submission, SubmissionQuery

__all__ = [
    "ErrorResponse",
    "FieldDescriptor",
    "FileAsset",
    "Form",
    "FormPage",
    "Submission",
    "SubmissionQuery",
    "SuccessResponse",
    "error",
    "success",
]
