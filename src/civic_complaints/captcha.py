"""CAPTCHA challenge gate."""

import logging
from typing import Optional

from .api.base import PortalApi
from .errors import ValidationFailed
from .models import CaptchaChallenge

logger = logging.getLogger(__name__)


class CaptchaGate:
    """Holds the current challenge and the user's typed response.

    Challenges are single-use on the server, so a challenge that went out
    with an intake request is marked consumed and must be refreshed before
    the next attempt.
    """

    def __init__(self, api: PortalApi):
        self.api = api
        self.challenge: Optional[CaptchaChallenge] = None
        self.response: str = ""
        self.consumed = False

    async def load(self) -> CaptchaChallenge:
        """Fetch a challenge if none is held yet."""
        if self.challenge is None or self.consumed:
            return await self.refresh()
        return self.challenge

    async def refresh(self) -> CaptchaChallenge:
        self.challenge = await self.api.get_captcha()
        self.response = ""
        self.consumed = False
        logger.debug("CAPTCHA refreshed")
        return self.challenge

    def respond(self, text: str) -> None:
        self.response = text

    @property
    def is_solved(self) -> bool:
        return (
            self.challenge is not None
            and bool(self.challenge.captcha_id)
            and not self.consumed
            and bool(self.response.strip())
        )

    def credentials(self) -> tuple[str, str]:
        if self.challenge is None or self.consumed:
            raise ValidationFailed({"captcha": "Please refresh the CAPTCHA and try again"})
        if not self.response.strip():
            raise ValidationFailed({"captcha": "Please enter the CAPTCHA code"})
        return self.challenge.captcha_id, self.response.strip()

    def invalidate(self) -> None:
        self.consumed = True
        self.response = ""
