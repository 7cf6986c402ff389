"""Operator commands for the mail sender counter.

The commands share the storage directory and configuration with the HTTP
service, so authorizing here means the service can reuse the stored token.

Example usages::

    # Complete the browser consent flow before starting the service.
    python -m scripts.mailcount_cli authorize

    # Count messages from one sender without running the HTTP server.
    python -m scripts.mailcount_cli count alerts@example.com

    # Delete the stored token; the next call re-authorizes.
    python -m scripts.mailcount_cli logout
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Callable

from pydantic import ValidationError

from mailcount.core.config import get_settings
from mailcount.core.exceptions import (
    AuthorizationExchangeError,
    CallbackPortExhaustedError,
    CredentialsNotConfiguredError,
    InvalidCredentialsFormatError,
    KeyFileError,
    OperationCancelledError,
    ProviderApiError,
)
from mailcount.core.logging import configure_logging
from mailcount.dependencies import get_authorization_controller, get_sender_count_service
from mailcount.utils.masking import mask_email

EXIT_OK = 0
EXIT_CONFIGURATION_ERROR = 2
EXIT_AUTHORIZATION_ERROR = 3
EXIT_PROVIDER_ERROR = 4
EXIT_CANCELLED = 130


def _authorize() -> int:
    controller = get_authorization_controller()
    asyncio.run(controller.authorize())
    print("Authorization complete; credentials stored.")
    return EXIT_OK


def _count(sender: str) -> int:
    service = get_sender_count_service()
    result = asyncio.run(service.count_from_sender(sender))
    print(f"{result.count} messages from {mask_email(result.sender)}")
    return EXIT_OK


def _logout() -> int:
    controller = get_authorization_controller()
    if controller.forget():
        print("Stored credentials deleted.")
    else:
        print("No stored credentials found.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Authorize Gmail access and count messages per sender."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "authorize",
        help="Run the OAuth consent flow and store the resulting token.",
    )

    count_parser = subparsers.add_parser(
        "count",
        help="Count messages received from a sender.",
    )
    count_parser.add_argument("sender", help="Sender email address.")

    subparsers.add_parser(
        "logout",
        help="Delete the stored token so the next request re-authorizes.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    command: str = args.command
    handlers: dict[str, Callable[[], int]] = {
        "authorize": _authorize,
        "count": lambda: _count(args.sender),
        "logout": _logout,
    }

    try:
        configure_logging(get_settings().log_level)
        return handlers[command]()
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_CONFIGURATION_ERROR
    except (
        CredentialsNotConfiguredError,
        InvalidCredentialsFormatError,
        KeyFileError,
    ) as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except (AuthorizationExchangeError, CallbackPortExhaustedError) as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_AUTHORIZATION_ERROR
    except ProviderApiError as exc:
        print(exc.public_message, file=sys.stderr)
        return EXIT_PROVIDER_ERROR
    except (OperationCancelledError, KeyboardInterrupt):
        print("Cancelled.", file=sys.stderr)
        return EXIT_CANCELLED


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
