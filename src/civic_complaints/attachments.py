"""Attachment handling and preview handles."""

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .models import Attachment

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass(frozen=True)
class AttachmentLimits:
    """Per-context caps on attachment count, size and type."""
    max_files: int
    max_file_size: int
    allowed_types: frozenset[str]

    @property
    def max_file_size_mb(self) -> int:
        return self.max_file_size // MB


GUEST_WIZARD_LIMITS = AttachmentLimits(
    max_files=5,
    max_file_size=10 * MB,
    allowed_types=frozenset({"image/jpeg", "image/jpg", "image/png"}),
)
CITIZEN_WIZARD_LIMITS = AttachmentLimits(
    max_files=10,
    max_file_size=10 * MB,
    allowed_types=frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif"}),
)
MAINTENANCE_UPLOAD_LIMITS = AttachmentLimits(
    max_files=10,
    max_file_size=10 * MB,
    allowed_types=frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"}),
)
PHOTO_UPLOAD_LIMITS = AttachmentLimits(
    max_files=5,
    max_file_size=5 * MB,
    allowed_types=frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"}),
)


@dataclass(frozen=True)
class FileInput:
    """A file selected by the user, not yet accepted."""
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: str | Path) -> "FileInput":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content_type=content_type or "application/octet-stream",
            content=path.read_bytes(),
        )


@dataclass(frozen=True)
class Rejection:
    filename: str
    reason: str


def check_file(filename: str, content_type: str, size: int, limits: AttachmentLimits) -> Optional[str]:
    """Return the reason a file breaks the limits, or None."""
    if content_type not in limits.allowed_types:
        kinds = sorted({t.split("/")[1].upper() for t in limits.allowed_types})
        return f'File "{filename}" must be one of: {", ".join(kinds)}'
    if size > limits.max_file_size:
        return f'File "{filename}" exceeds {limits.max_file_size_mb}MB limit'
    return None


def validate_attachments(files: Iterable, limits: AttachmentLimits) -> dict[str, str]:
    """Structural check of an attachment list, keyed for the form."""
    files = list(files)
    if len(files) > limits.max_files:
        return {"attachments": f"Maximum {limits.max_files} files allowed"}
    for file in files:
        reason = check_file(file.filename, file.content_type, file.size, limits)
        if reason:
            return {"attachments": reason}
    return {}


class PreviewRegistry:
    """Issues revocable preview handles for in-memory attachment content."""

    SCHEME = "preview://"

    def __init__(self):
        self._handles: dict[str, bytes] = {}

    def acquire(self, content: bytes) -> str:
        """Register content and return a new preview handle."""
        handle = f"{self.SCHEME}{uuid.uuid4()}"
        self._handles[handle] = content
        return handle

    def resolve(self, handle: str) -> Optional[bytes]:
        """Content behind a handle, or None once released."""
        return self._handles.get(handle)

    def release(self, handle: str) -> None:
        """Revoke one handle. Unknown handles are ignored."""
        self._handles.pop(handle, None)

    def release_all(self) -> None:
        """Revoke every outstanding handle."""
        self._handles.clear()

    @property
    def active_handles(self) -> frozenset[str]:
        return frozenset(self._handles)


class AttachmentManager:
    """Tracks accepted files and owns their preview handles.

    Files are checked against ``limits`` as they are added, so errors surface
    on selection rather than on step transition. A batch is accepted
    partially: valid files go in, the rest come back as rejections, and
    nothing past ``limits.max_files`` is ever kept.
    """

    def __init__(self, limits: AttachmentLimits, previews: Optional[PreviewRegistry] = None):
        self.limits = limits
        self.previews = previews or PreviewRegistry()
        self._items: list[Attachment] = []

    def __enter__(self) -> "AttachmentManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> list[Attachment]:
        return list(self._items)

    def add(self, files: Iterable[FileInput]) -> tuple[list[Attachment], list[Rejection]]:
        """Accept each file that fits the limits; reject the rest with a reason."""
        accepted: list[Attachment] = []
        rejected: list[Rejection] = []

        for file in files:
            reason = check_file(file.filename, file.content_type, file.size, self.limits)
            if reason is None and len(self._items) >= self.limits.max_files:
                reason = (
                    f'File "{file.filename}" not added: maximum '
                    f"{self.limits.max_files} files allowed"
                )
            if reason is not None:
                rejected.append(Rejection(file.filename, reason))
                continue

            attachment = Attachment(
                id=str(uuid.uuid4()),
                filename=file.filename,
                content_type=file.content_type,
                size=file.size,
                content=file.content,
                preview_url=self.previews.acquire(file.content),
            )
            self._items.append(attachment)
            accepted.append(attachment)

        if rejected:
            logger.info(
                "Rejected %d of %d attachment(s)", len(rejected), len(accepted) + len(rejected)
            )
        return accepted, rejected

    def remove(self, attachment_id: str) -> bool:
        """Drop one attachment and release its preview handle."""
        for index, attachment in enumerate(self._items):
            if attachment.id == attachment_id:
                del self._items[index]
                if attachment.preview_url:
                    self.previews.release(attachment.preview_url)
                return True
        return False

    def preview_url_for(self, attachment_id: str) -> Optional[str]:
        """Preview handle of an accepted attachment."""
        for attachment in self._items:
            if attachment.id == attachment_id:
                return attachment.preview_url
        return None

    def clear(self) -> None:
        """Drop every attachment and release all preview handles."""
        for attachment in self._items:
            if attachment.preview_url:
                self.previews.release(attachment.preview_url)
        self._items.clear()

    @staticmethod
    def summary_message(rejected: list[Rejection]) -> str:
        """Combine rejections into a single toast line."""
        if not rejected:
            return ""
        names = ", ".join(r.filename for r in rejected)
        return f"Some files were not added ({names}): " + "; ".join(r.reason for r in rejected)
