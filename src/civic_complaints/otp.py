"""OTP entry, countdown and error display."""

import asyncio
import math
import re
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional

INCOMPLETE_CODE_MESSAGE = "Please enter the complete 6-digit code"
EXPIRED_CODE_MESSAGE = "This code has expired. Please request a new one"

_NON_DIGIT_RE = re.compile(r"\D")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_code(text: str, length: int = 6) -> str:
    """Strip everything but digits and cap at ``length``."""
    return _NON_DIGIT_RE.sub("", text or "")[:length]


class OtpCells:
    """Six single-digit cells with keyboard navigation and paste splitting."""

    def __init__(self, length: int = 6):
        self.length = length
        self.digits = [""] * length
        self.focus = 0

    @property
    def value(self) -> str:
        return "".join(self.digits)

    def enter(self, index: int, char: str) -> None:
        """Type into a cell. Non-digits are ignored and focus moves on."""
        digit = normalize_code(char, self.length)[-1:]
        if char and not digit:
            return
        self.digits[index] = digit
        if digit and index < self.length - 1:
            self.focus = index + 1
        else:
            self.focus = index

    def backspace(self, index: int) -> None:
        """Clear a cell, or step back when it is already empty."""
        if self.digits[index]:
            self.digits[index] = ""
            self.focus = index
        elif index > 0:
            self.focus = index - 1

    def move_left(self) -> None:
        self.focus = max(0, self.focus - 1)

    def move_right(self) -> None:
        self.focus = min(self.length - 1, self.focus + 1)

    def paste(self, text: str) -> None:
        """Spread pasted digits across the cells from the first one."""
        digits = normalize_code(text, self.length)
        if not digits:
            return
        self.digits = list(digits) + [""] * (self.length - len(digits))
        self.focus = min(len(digits), self.length - 1)

    def clear(self) -> None:
        self.digits = [""] * self.length
        self.focus = 0


class OtpDialogController:
    """State behind the OTP dialog.

    Server errors and local pre-submission errors are kept apart; once a
    server error is present it is the one shown.
    """

    def __init__(self, expires_at: datetime, clock: Clock = utcnow, code_length: int = 6):
        self.expires_at = expires_at
        self.clock = clock
        self.code_length = code_length
        self.cells = OtpCells(code_length)
        self.is_verifying = False
        self.is_resending = False
        self.server_error: Optional[str] = None
        self.local_error: Optional[str] = None
        self.resend_prompt = False

    @property
    def code(self) -> str:
        return self.cells.value

    def set_code(self, text: str) -> None:
        """Single text field input; non-digits are dropped."""
        digits = normalize_code(text, self.code_length)
        self.cells.clear()
        self.cells.paste(digits)
        if digits:
            self.local_error = None

    def seconds_remaining(self) -> int:
        """Whole seconds until expiry, never negative."""
        delta = (self.expires_at - self.clock()).total_seconds()
        return max(0, math.floor(delta))

    def format_remaining(self) -> str:
        """Remaining time as m:ss."""
        mins, secs = divmod(self.seconds_remaining(), 60)
        return f"{mins}:{secs:02d}"

    @property
    def is_expired(self) -> bool:
        return self.seconds_remaining() == 0

    @property
    def can_resend(self) -> bool:
        return (self.is_expired or self.resend_prompt) and not self.is_resending

    @property
    def can_verify(self) -> bool:
        return (
            len(self.code) == self.code_length
            and not self.is_verifying
            and not self.is_expired
        )

    def prepare_verify(self) -> Optional[str]:
        """Return the code to send, or None after setting a local error."""
        if self.is_expired:
            self.local_error = EXPIRED_CODE_MESSAGE
            self.resend_prompt = True
            return None
        if len(self.code) != self.code_length:
            self.local_error = INCOMPLETE_CODE_MESSAGE
            return None
        self.local_error = None
        return self.code

    def show_server_error(self, message: str, expired: bool = False) -> None:
        self.server_error = message
        if expired:
            self.resend_prompt = True
            self.cells.clear()

    @property
    def visible_error(self) -> Optional[str]:
        return self.server_error or self.local_error

    def restart(self, expires_at: datetime) -> None:
        """Start over after a resend."""
        self.expires_at = expires_at
        self.server_error = None
        self.local_error = None
        self.resend_prompt = False
        self.cells.clear()

    async def countdown(self, interval: float = 1.0) -> AsyncIterator[int]:
        """Yield the seconds remaining every ``interval`` until zero."""
        while True:
            remaining = self.seconds_remaining()
            yield remaining
            if remaining == 0:
                return
            await asyncio.sleep(interval)
