from __future__ import annotations

import secrets
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import anyio

from onboarding.core.datetime_utils import utcnow
from onboarding.core.errors import NotFound, ValidationFailed
from onboarding.core.paths import resolve_repo_path

CANDIDATE_DOCS_DIR = "candidate-docs"
OFFER_LETTERS_DIR = "offer-letters"
MANAGED_DIRS = (CANDIDATE_DOCS_DIR, OFFER_LETTERS_DIR)


@dataclass(frozen=True)
class StoredFile:
    relative_path: str
    filename: str
    size: int


class AttachmentStore:
    """Files under one managed root, addressed by root-relative POSIX paths."""

    def __init__(self, root: str | Path) -> None:
        self.root = resolve_repo_path(str(root)) if not isinstance(root, Path) else root.resolve()

    def resolve(self, relative_path: str | None) -> Path:
        """Map a stored path back to disk; rejects anything escaping the root."""
        raw = (relative_path or "").strip().replace("\\", "/")
        if not raw:
            raise ValidationFailed("File path is required.")
        raw = raw.lstrip("/")
        if raw.startswith("uploads/"):
            raw = raw[len("uploads/") :]
        parts = PurePosixPath(raw).parts
        if not parts or any(part in {"..", "."} for part in parts) or ":" in parts[0]:
            raise ValidationFailed("File must be within the uploads directory.")

        root = self.root.resolve()
        candidate = (root / Path(*parts)).resolve()
        if not candidate.is_relative_to(root) or candidate == root:
            raise ValidationFailed("File must be within the uploads directory.")
        return candidate

    async def resolve_existing(self, relative_path: str | None) -> Path:
        path = self.resolve(relative_path)
        if not await anyio.Path(path).is_file():
            raise NotFound("File not found on server.")
        return path

    async def save(self, folder: str, original_name: str, data: bytes) -> StoredFile:
        if folder not in MANAGED_DIRS:
            raise ValidationFailed("Unknown storage folder.")
        stamp = int(utcnow().timestamp() * 1000)
        stored_name = f"{stamp}-{secrets.token_hex(4)}-{original_name}"
        relative = f"{folder}/{stored_name}"
        target = self.resolve(relative)
        await anyio.Path(target.parent).mkdir(parents=True, exist_ok=True)
        await anyio.Path(target).write_bytes(data)
        return StoredFile(relative_path=relative, filename=stored_name, size=len(data))

    async def read(self, relative_path: str | None) -> bytes:
        path = await self.resolve_existing(relative_path)
        return await anyio.Path(path).read_bytes()
