"""Services for docupload module."""
from .multipart import FIELD_NAME, MultipartEncoder
from .resolver import (
    DEFAULT_MIME_TYPE,
    MIME_TYPES,
    ReferenceResolver,
    ResolutionReport,
    mime_type_for,
)
from .transport import HTTPTransport

__all__ = [
    "FIELD_NAME",
    "MultipartEncoder",
    "DEFAULT_MIME_TYPE",
    "MIME_TYPES",
    "ReferenceResolver",
    "ResolutionReport",
    "mime_type_for",
    "HTTPTransport",
]
