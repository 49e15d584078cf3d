"""
Configuration for commands and the application.

``CommandConfig`` holds the per-command gating knobs. Several of them accept
either a plain value or a function of the user record, evaluated per
invocation::

    app.command("roll", max_usage=lambda user: 20 if user and user.authority > 2 else 5)

``AppConfig`` holds application-wide settings with environment overrides.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Optional, Union

from chorus.exceptions import CommandConfigError
from chorus.types import UserType


@dataclass(frozen=True)
class CommandConfig:
    """Per-command configuration.

    Attributes:
        description: Human readable summary.
        authority: Minimum user authority required to run the command.
        max_usage: Daily invocation cap per user (value or ``fn(user)``).
        min_interval: Minimum seconds between two invocations by one user (value or ``fn(user)``).
        check_arg_count: Reject missing required or redundant positional arguments.
        check_unknown: Reject undeclared options.
        check_required: Reject invocations lacking a required option.
        disable: Hide the command (value or ``fn(user)``).
        usage_name: Usage counter key; defaults to the command name.
        show_warning: Reply with a hint when an invocation is rejected.
    """

    description: Optional[str] = None
    authority: int = 1
    max_usage: UserType[float] = math.inf
    min_interval: UserType[float] = 0
    check_arg_count: bool = False
    check_unknown: bool = False
    check_required: bool = False
    disable: Union[bool, Callable[..., bool]] = False
    usage_name: Optional[str] = None
    show_warning: bool = True

    def with_overrides(self, **overrides: Any) -> CommandConfig:
        """Create a new config with the given keys replaced; last value wins."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise CommandConfigError(unknown)
        return replace(self, **overrides)


def _env_list(name: str) -> Optional[tuple[str, ...]]:
    raw = os.environ.get(name)
    if raw is None:
        return None
    return tuple(item for item in (part.strip() for part in raw.split(",")) if item)


@dataclass(frozen=True)
class AppConfig:
    """Application-wide configuration.

    Attributes:
        command_prefixes: Prefixes that mark a message as a command invocation.
        nicknames: Names the bot answers to; addressing it also marks a command.
        require_prefix_in_groups: Whether group and discuss messages need a prefix or nickname.
        base_user_fields: User fields fetched for every message.
        base_group_fields: Group fields fetched for every group message.
        sender_endpoint: URL the HTTP sender posts replies to.
        sender_token: Bearer token for the HTTP sender.
    """

    command_prefixes: tuple[str, ...] = ("/",)
    nicknames: tuple[str, ...] = ()
    require_prefix_in_groups: bool = True
    base_user_fields: tuple[str, ...] = ("id",)
    base_group_fields: tuple[str, ...] = ("id",)
    sender_endpoint: Optional[str] = None
    sender_token: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if any(not isinstance(prefix, str) for prefix in self.command_prefixes):
            raise ValueError("command_prefixes must be strings")
        if any(not name.strip() for name in self.nicknames):
            raise ValueError("nicknames must not be blank")
        if self.sender_endpoint is not None and not self.sender_endpoint.startswith(
            ("http://", "https://")
        ):
            raise ValueError("sender_endpoint must be an http(s) URL")

    def with_overrides(self, **overrides: Any) -> AppConfig:
        return replace(self, **overrides)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Build a config from ``CHORUS_*`` environment variables over the defaults."""
        overrides: dict[str, Any] = {}
        prefixes = _env_list("CHORUS_COMMAND_PREFIXES")
        if prefixes is not None:
            overrides["command_prefixes"] = prefixes
        nicknames = _env_list("CHORUS_NICKNAMES")
        if nicknames is not None:
            overrides["nicknames"] = nicknames
        if "CHORUS_REQUIRE_PREFIX_IN_GROUPS" in os.environ:
            overrides["require_prefix_in_groups"] = os.environ[
                "CHORUS_REQUIRE_PREFIX_IN_GROUPS"
            ].lower() in ("1", "true", "yes")
        if os.environ.get("CHORUS_SENDER_ENDPOINT"):
            overrides["sender_endpoint"] = os.environ["CHORUS_SENDER_ENDPOINT"]
        if os.environ.get("CHORUS_SENDER_TOKEN"):
            overrides["sender_token"] = os.environ["CHORUS_SENDER_TOKEN"]
        return cls(**overrides)


__all__ = ["AppConfig", "CommandConfig"]
