from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath

from fastapi import UploadFile

from onboarding.core.errors import ValidationFailed

MAX_FILENAME_LENGTH = 150
GENERIC_MIME_TYPES = frozenset({"application/octet-stream", "binary/octet-stream"})

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

_PDF_AND_IMAGES = frozenset(
    {
        "application/pdf",
        "application/x-pdf",
        "image/jpg",
        "image/jpeg",
        "image/pjpeg",
        "image/png",
    }
)
_WORD = frozenset(
    {
        "application/msword",
        "application/vnd.ms-word",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)


@dataclass(frozen=True)
class UploadPolicy:
    """File extensions and declared content types one upload slot accepts."""

    extensions: frozenset[str]
    mime_types: frozenset[str]
    unsupported_message: str

    def check_name(self, filename: str) -> None:
        if PurePath(filename).suffix.lower() not in self.extensions:
            raise ValidationFailed(self.unsupported_message)

    def check_content_type(self, raw: str | None) -> None:
        declared = (raw or "").split(";", 1)[0].strip().lower()
        if declared and declared not in self.mime_types and declared not in GENERIC_MIME_TYPES:
            raise ValidationFailed("Unsupported file content type.")


CANDIDATE_DOCUMENTS = UploadPolicy(
    extensions=frozenset({".jpeg", ".jpg", ".pdf", ".png"}),
    mime_types=_PDF_AND_IMAGES,
    unsupported_message="Only PDF, JPG and PNG files are allowed.",
)
OFFER_LETTERS = UploadPolicy(
    extensions=frozenset({".doc", ".docx", ".jpeg", ".jpg", ".pdf", ".png"}),
    mime_types=_PDF_AND_IMAGES | _WORD,
    unsupported_message="Only PDF, DOC, DOCX, JPG and PNG files are allowed.",
)


def sanitize_filename(raw: str | None, *, default: str = "file") -> str:
    cleaned = _UNSAFE_CHARS.sub("_", (raw or "").strip().replace("\\", "/").split("/")[-1]).strip("._")
    name = cleaned or default
    if len(name) <= MAX_FILENAME_LENGTH:
        return name
    suffix = PurePath(name).suffix
    stem = name[: len(name) - len(suffix)] if suffix else name
    return f"{stem[: max(1, MAX_FILENAME_LENGTH - len(suffix))]}{suffix}"


async def read_upload(upload: UploadFile, policy: UploadPolicy, *, max_bytes: int) -> tuple[str, bytes]:
    """Validate ``upload`` against ``policy`` and return its safe filename and content."""
    filename = sanitize_filename(upload.filename)
    policy.check_name(filename)
    policy.check_content_type(upload.content_type)
    data = await upload.read(max_bytes + 1)
    if not data:
        raise ValidationFailed(f"{filename} is empty.")
    if len(data) > max_bytes:
        raise ValidationFailed(f"{filename} exceeds the {max_bytes // (1024 * 1024)} MB limit.")
    return filename, data
