"""Abstract draft repository interface."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import ComplaintDraft, WizardStep


class DraftRepository(ABC):
    """Abstract interface for in-progress draft storage.

    Attachments are never stored; only the typed fields and the step.
    """

    @abstractmethod
    async def load(self) -> Optional[tuple[ComplaintDraft, WizardStep]]:
        """Get the saved draft and the step it was on."""
        pass

    @abstractmethod
    async def save(self, draft: ComplaintDraft, step: WizardStep) -> None:
        """Save the draft, replacing any previous one."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Forget the saved draft."""
        pass
