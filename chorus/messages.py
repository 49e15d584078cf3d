"""
User-facing reply texts and invocation rejection hints.
"""

from __future__ import annotations

from enum import IntFlag
from typing import Any


class CommandHint(IntFlag):
    """Reasons a command invocation is rejected before its action runs."""

    USAGE_EXHAUSTED = 1
    TOO_FREQUENT = 2
    LOW_AUTHORITY = 4
    INSUFFICIENT_ARGUMENTS = 8
    REDUNDANT_ARGUMENTS = 16
    UNKNOWN_OPTIONS = 32
    REQUIRED_OPTIONS = 64
    INVALID_OPTION = 128


COMMAND_NOT_FOUND = "Command not found."

HINT_MESSAGES: dict[CommandHint, str] = {
    CommandHint.USAGE_EXHAUSTED: "You have used up today's quota for this command.",
    CommandHint.TOO_FREQUENT: "You are calling this command too frequently, please wait a moment.",
    CommandHint.LOW_AUTHORITY: "Permission denied.",
    CommandHint.INSUFFICIENT_ARGUMENTS: "Insufficient arguments, please check the command syntax.",
    CommandHint.REDUNDANT_ARGUMENTS: "Redundant arguments, please check the command syntax.",
    CommandHint.UNKNOWN_OPTIONS: "Unknown options: %s, please check the command syntax.",
    CommandHint.REQUIRED_OPTIONS: "Missing required option %s, please check the command syntax.",
    CommandHint.INVALID_OPTION: "Invalid value for option %s, please check the command syntax.",
}


def format_hint(hint: CommandHint, *params: Any) -> str:
    template = HINT_MESSAGES[hint]
    return template % params if "%s" in template else template
