# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""aws-asg-status CLI."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

import httpx
from botocore.exceptions import BotoCoreError, ClientError

from ..config import DEFAULT_HEALTHCHECK_TIMEOUT, load_healthcheck_settings, parse_duration
from ..errors import AsgStatusError, UnknownCommandError
from ..log import setup_logging
from ..runtime import COMMANDS, AsgStatus
from ..version import __version__

logger = logging.getLogger(__name__)

USAGE_ERROR = "Must supply an argument: " + "|".join(COMMANDS)


def _duration(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _healthcheck_url(value: str) -> str:
    if not value:
        return value
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise argparse.ArgumentTypeError(f"not an http(s) URL: {value!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aws-asg-status",
        description="Report this EC2 instance's health or standby state to its Auto Scaling Group",
    )
    parser.add_argument(
        "command",
        nargs="?",
        metavar="{" + ",".join(COMMANDS) + "}",
        help="Lifecycle action (defaults to healthy when --healthcheck-url is given)",
    )
    parser.add_argument(
        "--healthcheck-url",
        type=_healthcheck_url,
        default="",
        help="Healthcheck endpoint URL; `healthy` waits for it to return 200",
    )
    parser.add_argument(
        "--healthcheck-timeout",
        type=_duration,
        default=DEFAULT_HEALTHCHECK_TIMEOUT,
        help="Healthcheck timeout, e.g. 300s, 5m, 1m30s (default: 5m)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _print_json(data: dict[str, Any]) -> None:
    json.dump(data, sys.stdout, indent=4, default=str)
    sys.stdout.write("\n")


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    parser = build_parser()
    args = parser.parse_args(argv)

    command = args.command
    if command is None:
        if not args.healthcheck_url:
            logger.error(USAGE_ERROR)
            return 1
        command = "healthy"
    elif command not in COMMANDS:
        logger.error("%s", UnknownCommandError(command))
        return 1

    settings = load_healthcheck_settings(url=args.healthcheck_url, timeout=args.healthcheck_timeout)

    try:
        with AsgStatus() as asg:
            result = asg.run(command, settings)
    except (AsgStatusError, ClientError, BotoCoreError) as exc:
        logger.error("%s", exc)
        return 1

    if command in ("enter-standby", "exit-standby"):
        _print_json(result)
    elif command == "status":
        logger.info("%s", json.dumps(result, indent=4, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
