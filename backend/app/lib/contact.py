"""Data carried across the contact form -> relay boundary."""
import base64
import binascii
import re
from typing import Tuple

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

DEFAULT_CONTENT_TYPE = "application/octet-stream"
MIN_MESSAGE_LENGTH = 2

_MIME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*/[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*$")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")


def encode_payload(data: bytes) -> str:
    """Base64 text for raw file bytes."""
    return base64.b64encode(data).decode("ascii")


def decode_payload(content: str) -> bytes:
    return base64.b64decode(content, validate=True)


class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    filename: str
    content: str
    content_type: str = Field(default=DEFAULT_CONTENT_TYPE, alias="contentType")

    @field_validator("filename")
    @classmethod
    def _filename_is_single_line(cls, v: str) -> str:
        if _CONTROL_RE.search(v):
            raise ValueError("filename must not contain control characters")
        return v

    @field_validator("content")
    @classmethod
    def _content_is_base64(cls, v: str) -> str:
        try:
            decode_payload(v)
        except (binascii.Error, ValueError):
            raise ValueError("content must be base64 encoded")
        return v

    @field_validator("content_type", mode="before")
    @classmethod
    def _normalize_content_type(cls, v):
        v = (v or "").strip()
        # raw file bytes cannot be re-attached as a structured MIME part
        if not _MIME_RE.match(v) or v.lower().startswith(("multipart/", "message/")):
            return DEFAULT_CONTENT_TYPE
        return v.lower()

    @classmethod
    def from_bytes(cls, filename: str, data: bytes, content_type: str | None = None) -> "Attachment":
        return cls(filename=filename, content=encode_payload(data), content_type=content_type)

    def decoded(self) -> bytes:
        return decode_payload(self.content)


class ContactSubmission(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: EmailStr
    message: str = Field(min_length=MIN_MESSAGE_LENGTH)
    attachments: Tuple[Attachment, ...] = ()

    def with_attachments(self, attachments) -> "ContactSubmission":
        return self.model_copy(update={"attachments": tuple(attachments)})


class RelayResult(BaseModel):
    success: bool
    message: str
