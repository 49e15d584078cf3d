"""
Custom exception types for chorus.

This module defines the exception hierarchy used throughout the codebase.

- Configuration errors are raised while plugins register commands, aliases,
  options or scopes. They are fatal and meant to surface during startup.
- Dispatch errors wrap failures that escape an action, a middleware or the
  transport while an event is being handled.

Invocation rejections (insufficient arguments, low authority, exhausted
usage, ...) are not exceptions; see ``chorus.messages.CommandHint``.
"""

from __future__ import annotations

from typing import Any


class ChorusError(Exception):
    """Base exception for all chorus errors.

    All custom exceptions in chorus inherit from this class
    to enable catching all chorus-specific errors with a single handler.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(ChorusError):
    """Base exception for invalid command or scope configuration."""

    pass


class CommandNameError(ConfigurationError):
    """Raised when a command is registered without a name."""

    def __init__(self, raw_name: str = ""):
        super().__init__("Expect a command name", {"raw_name": raw_name})
        self.raw_name = raw_name


class DuplicateCommandError(ConfigurationError):
    """Raised when a command name or alias is already bound to another command."""

    def __init__(self, name: str, existing: str):
        super().__init__(
            f"Duplicate command name: {name}",
            {"name": name, "existing": existing},
        )
        self.name = name
        self.existing = existing


class DuplicateOptionError(ConfigurationError):
    """Raised when an option flag is already claimed by another option of the command."""

    def __init__(self, command: str, flag: str):
        super().__init__(
            f"Duplicate option name '{flag}' for command {command}",
            {"command": command, "flag": flag},
        )
        self.command = command
        self.flag = flag


class InvalidSubcommandError(ConfigurationError):
    """Raised when a command path would create an invalid parent relation."""

    def __init__(self, name: str, reason: str):
        super().__init__(
            f"Invalid subcommand {name}: {reason}",
            {"name": name, "reason": reason},
        )
        self.name = name
        self.reason = reason


class ContextContainmentError(ConfigurationError):
    """Raised when a command context is unreachable or escapes its parent context."""

    def __init__(self, name: str, context: str, parent_context: str | None = None):
        details = {"name": name, "context": context}
        if parent_context is not None:
            details["parent_context"] = parent_context
            message = f"Context of {name} is not contained in the context of its parent"
        else:
            message = f"Command {name} would be registered in an empty context"
        super().__init__(message, details)
        self.name = name
        self.context = context
        self.parent_context = parent_context


class ScopeFormatError(ConfigurationError):
    """Raised when a scope identifier cannot be parsed."""

    def __init__(self, identifier: str, segment: str):
        super().__init__(
            f"Invalid scope identifier: {identifier!r}",
            {"identifier": identifier, "segment": segment},
        )
        self.identifier = identifier
        self.segment = segment


class CommandConfigError(ConfigurationError):
    """Raised when a command config contains unknown keys."""

    def __init__(self, keys: list[str]):
        super().__init__(f"Unknown command config keys: {', '.join(keys)}", {"keys": keys})
        self.keys = keys


# ============================================================================
# Dispatch Errors
# ============================================================================


class DispatchError(ChorusError):
    """Base exception for failures while handling an inbound event."""

    pass


class CommandExecutionError(DispatchError):
    """Wraps an exception that escaped a command action; published to the ``error/command`` hook."""

    def __init__(self, command: str, cause: BaseException):
        super().__init__(
            f"Command {command} failed: {cause}",
            {"command": command, "error_type": type(cause).__name__},
        )
        self.command = command
        self.cause = cause


class SenderError(DispatchError):
    """Raised when the transport rejects an outgoing message."""

    def __init__(self, reason: str, status: int | None = None):
        details: dict[str, Any] = {"reason": reason}
        if status is not None:
            details["status"] = status
        super().__init__(f"Failed to send message: {reason}", details)
        self.reason = reason
        self.status = status


__all__ = [
    "ChorusError",
    "ConfigurationError",
    "CommandNameError",
    "DuplicateCommandError",
    "DuplicateOptionError",
    "InvalidSubcommandError",
    "ContextContainmentError",
    "ScopeFormatError",
    "CommandConfigError",
    "DispatchError",
    "CommandExecutionError",
    "SenderError",
]
