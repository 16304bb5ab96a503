"""Entry point for the guest complaint console."""

import asyncio

from dotenv import load_dotenv

from .api import create_api
from .config.settings import Settings, configure_logging
from .console import ConsoleWizard
from .repository import LocalDraftRepository
from .validation import policy_for


def main() -> None:
    """Run the guest complaint wizard against the configured portal."""
    # Load environment variables
    load_dotenv()

    # Initialize settings
    settings = Settings()
    configure_logging(settings.log)

    api = create_api(settings)
    drafts = LocalDraftRepository(settings.storage.data_path) if settings.storage.persist_drafts else None

    wizard = ConsoleWizard(
        api=api,
        policy=policy_for(settings.form.mode),
        drafts=drafts,
        code_length=settings.otp.code_length,
    )

    try:
        asyncio.run(wizard.run())
    except KeyboardInterrupt:
        print("\nCancelled.")


if __name__ == "__main__":
    main()
