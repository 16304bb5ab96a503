"""Local JSON file and in-memory draft repositories."""

import json
import logging
from pathlib import Path
from typing import Optional

import aiofiles

from ..models import ComplaintDraft, WizardStep
from .base import DraftRepository

logger = logging.getLogger(__name__)


class LocalDraftRepository(DraftRepository):
    """JSON file-based draft repository."""

    def __init__(self, data_path: str):
        self.file_path = Path(data_path) / "guest_complaint_draft.json"

    async def load(self) -> Optional[tuple[ComplaintDraft, WizardStep]]:
        if not self.file_path.exists():
            return None
        async with aiofiles.open(self.file_path, "r") as f:
            content = await f.read()
        if not content:
            return None
        try:
            data = json.loads(content)
            return ComplaintDraft.from_dict(data["draft"]), WizardStep(data.get("step", 1))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable draft at %s: %s", self.file_path, e)
            return None

    async def save(self, draft: ComplaintDraft, step: WizardStep) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.file_path, "w") as f:
            await f.write(json.dumps({"draft": draft.to_dict(), "step": int(step)}, indent=2))

    async def clear(self) -> None:
        self.file_path.unlink(missing_ok=True)


class MemoryDraftRepository(DraftRepository):
    """Process-local draft repository."""

    def __init__(self):
        self._saved: Optional[tuple[dict, int]] = None

    async def load(self) -> Optional[tuple[ComplaintDraft, WizardStep]]:
        if self._saved is None:
            return None
        data, step = self._saved
        return ComplaintDraft.from_dict(data), WizardStep(step)

    async def save(self, draft: ComplaintDraft, step: WizardStep) -> None:
        self._saved = (draft.to_dict(), int(step))

    async def clear(self) -> None:
        self._saved = None
