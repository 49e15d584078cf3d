"""
Command nodes and the execution pipeline.

A ``Command`` is a node in the command tree: a name and aliases, declared
arguments and options, the ``Context`` it is reachable in, a ``CommandConfig``
and an optional action. Commands are created through ``App.command`` /
``BoundContext.command``; the app owns the name and alias registries.

Executing a command runs a fixed sequence of checks, the first failing one
ends the invocation with a ``CommandHint``:

1. ``before-command`` hook (a truthy result aborts silently)
2. argument count (``check_arg_count``)
3. unknown options (``check_unknown``), then invalid option values
4. required options (``check_required``)
5. authority and usage
6. ``command`` hook, the action, and ``after-command`` unless the action fell through
"""

from __future__ import annotations

import inspect
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional

from chorus.config import CommandConfig
from chorus.exceptions import CommandNameError, DuplicateOptionError
from chorus.logging_config import get_logger
from chorus.messages import CommandHint, format_hint
from chorus.parser import (
    CommandArgument,
    CommandOption,
    ParsedLine,
    parse_arguments,
    parse_line,
    parse_option,
)
from chorus.types import GroupField, NextFunction, UserField
from chorus.usage import update_usage

if TYPE_CHECKING:
    from chorus.app import App, BoundContext
    from chorus.meta import Meta
    from chorus.scope import Context

logger = get_logger(__name__)

Action = Callable[..., Any]


@dataclass
class ShortcutConfig:
    """A message text that triggers a command with preset arguments."""

    name: str
    command: Command
    authority: int = 1
    hidden: bool = False
    prefix: bool = False
    fuzzy: bool = False
    one_arg: bool = False
    args: list[str] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class ParsedCommandLine:
    """One invocation of a command."""

    meta: Meta
    command: Optional[Command] = None
    args: list[str] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)
    unknown: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    rest: str = ""
    next: Optional[NextFunction] = field(default=None, repr=False)
    shortcut: Optional[ShortcutConfig] = field(default=None, repr=False)

    @classmethod
    def from_line(cls, meta: Meta, command: Command, line: ParsedLine) -> ParsedCommandLine:
        return cls(
            meta=meta,
            command=command,
            args=line.args,
            options=line.options,
            unknown=line.unknown,
            invalid=line.invalid,
            rest=line.rest,
        )

    async def send(self, message: str) -> None:
        """Reply to the conversation the invocation came from."""
        if self.command is None:
            raise RuntimeError("Invocation is not bound to a command")
        await self.command.app.send(self.meta, message)


class Command:
    """A node of the command tree."""

    def __init__(
        self,
        name: str,
        declaration: str,
        context: Context,
        app: App,
        config: Optional[CommandConfig] = None,
    ) -> None:
        if not name:
            raise CommandNameError(declaration)
        self.name = name
        self.declaration = declaration.strip()
        self.context = context
        self.app = app
        self.config = config or CommandConfig()
        self.parent: Optional[Command] = None
        self.children: list[Command] = []

        self._aliases: list[str] = []
        self._options: list[CommandOption] = []
        self._opts_def: dict[str, CommandOption] = {}
        self._shortcuts: dict[str, ShortcutConfig] = {}
        self._user_fields: set[UserField] = set()
        self._group_fields: set[GroupField] = set()
        self._args_def: list[CommandArgument] = parse_arguments(self.declaration)
        self._action: Optional[Action] = None

    def __repr__(self) -> str:
        return f"Command({self.name!r}, context={self.context.identifier!r})"

    @property
    def usage_name(self) -> str:
        return self.config.usage_name or self.name

    @property
    def aliases(self) -> tuple[str, ...]:
        return tuple(self._aliases)

    @property
    def options(self) -> tuple[CommandOption, ...]:
        return tuple(self._options)

    @property
    def arguments(self) -> tuple[CommandArgument, ...]:
        return tuple(self._args_def)

    @property
    def has_action(self) -> bool:
        return self._action is not None

    def set_declaration(self, declaration: str) -> None:
        self.declaration = declaration.strip()
        self._args_def = parse_arguments(self.declaration)

    # ------------------------------------------------------------------
    # Registration API
    # ------------------------------------------------------------------

    def alias(self, *names: str) -> Command:
        for name in names:
            name = name.lower()
            self.app._register_alias(name, self)
            if name not in self._aliases:
                self._aliases.append(name)
        return self

    def remove_alias(self, name: str) -> bool:
        name = name.lower()
        if name == self.name or name not in self._aliases:
            return False
        self._aliases.remove(name)
        self.app._unregister_alias(name, self)
        return True

    def user_fields(self, fields: Iterable[UserField]) -> Command:
        self._user_fields.update(fields)
        return self

    def group_fields(self, fields: Iterable[GroupField]) -> Command:
        self._group_fields.update(fields)
        return self

    def subcommand(self, raw_name: str, description: Optional[str] = None, **config: Any) -> Command:
        """Register a child; ``.name`` nests as ``parent.name``, anything else as ``name``."""
        separator = "" if raw_name.startswith(".") else "/"
        return self.app.scope(self.context).command(
            self.name + separator + raw_name, description, **config
        )

    def shortcut(self, name: str, **config: Any) -> Command:
        config.setdefault("authority", self.config.authority)
        shortcut = ShortcutConfig(name=name, command=self, **config)
        self._shortcuts[name] = shortcut
        self.app._register_shortcut(shortcut)
        return self

    def option(self, raw_name: str, description: Optional[str] = None, **config: Any) -> Command:
        """Declare an option, e.g. ``-r, --repeat <times>``."""
        option = parse_option(raw_name, description, **config)
        for name in option.names:
            if name in self._opts_def:
                raise DuplicateOptionError(self.name, name)
        self._options.append(option)
        for name in option.names:
            self._opts_def[name] = option
        return self

    def remove_option(self, name: str) -> bool:
        option = self._opts_def.get(name.lstrip("-"))
        if option is None:
            return False
        for flag in option.names:
            del self._opts_def[flag]
        self._options.remove(option)
        return True

    def action(self, callback: Action) -> Command:
        """Bind the callback run as ``callback(argv, *args)``; sync or async."""
        self._action = callback
        return self

    def end(self) -> BoundContext:
        return self.app.scope(self.context)

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def get_config(self, key: str, meta: Meta) -> Any:
        """Config value, evaluating per-user callables against ``meta.user``."""
        value = getattr(self.config, key)
        return value(meta.user) if callable(value) else value

    def parse(self, source: str) -> ParsedLine:
        return parse_line(source, self._args_def, self._opts_def)

    def attach_user_fields(self, fields: set[UserField], options: Mapping[str, Any]) -> set[str]:
        """Add the user fields this invocation's checks will read."""
        fields.update(self._user_fields)
        max_usage, min_interval = self.config.max_usage, self.config.min_interval
        fetch_authority = self.config.authority > 0
        fetch_usage = (
            callable(max_usage)
            or callable(min_interval)
            or max_usage < math.inf
            or min_interval > 0
        )
        for option in self._options:
            if option.key in options:
                if option.authority > 0:
                    fetch_authority = True
                if option.not_usage:
                    fetch_usage = False
        if fetch_authority:
            fields.add("authority")
        if fetch_usage:
            fields.update(("usage", "timers"))
        return fields

    def attach_group_fields(self, fields: set[str]) -> set[str]:
        fields.update(self._group_fields)
        return fields

    async def execute(
        self,
        argv: ParsedCommandLine,
        next: Optional[NextFunction] = None,
    ) -> Optional[CommandHint]:
        """Run the checks and the action; returns the rejection hint, if any."""
        argv.command = self
        meta = argv.meta
        hooks = self.app.hooks

        if await hooks.serialize("before-command", argv, meta=meta):
            return None

        rejection = self._check_line(argv)
        if rejection is None:
            hint = await self._check_user(meta, argv.options)
            if hint is not None:
                rejection = (hint,)
        if rejection is not None:
            return await self._send_hint(meta, *rejection)

        for option in self._options:
            if option.default is not None and option.key not in argv.options:
                argv.options[option.key] = option.default

        logger.debug("Executing command", command=self.name)
        await hooks.parallelize("command", argv, meta=meta)

        skipped = False

        async def fallthrough() -> Any:
            nonlocal skipped
            skipped = True
            if next is not None:
                return await next()
            return None

        argv.next = fallthrough
        if self._action is None:
            await fallthrough()
        else:
            # Declared positions that were not supplied are passed as None
            missing = max(len(self._args_def) - len(argv.args), 0)
            result = self._action(argv, *argv.args, *([None] * missing))
            if inspect.isawaitable(result):
                await result
        if not skipped:
            await hooks.parallelize("after-command", argv, meta=meta)
        return None

    def _check_line(self, argv: ParsedCommandLine) -> Optional[tuple]:
        args, args_def = argv.args, self._args_def
        if self.config.check_arg_count:
            if len(args) < len(args_def) and args_def[len(args)].required:
                return (CommandHint.INSUFFICIENT_ARGUMENTS,)
            if len(args) > len(args_def):
                final = args_def[-1] if args_def else None
                if final is None or not (final.no_segment or final.variadic):
                    return (CommandHint.REDUNDANT_ARGUMENTS,)

        if self.config.check_unknown and argv.unknown:
            return (CommandHint.UNKNOWN_OPTIONS, ", ".join(argv.unknown))

        if argv.invalid:
            return (CommandHint.INVALID_OPTION, ", ".join(argv.invalid))

        if self.config.check_required:
            for option in self._options:
                if option.required and option.key not in argv.options:
                    return (CommandHint.REQUIRED_OPTIONS, option.raw_name)
        return None

    async def _check_user(self, meta: Meta, options: Mapping[str, Any]) -> Optional[CommandHint]:
        """Check authority and usage; no user record means no gating."""
        user = meta.user
        if user is None:
            return None

        if self.config.authority > user.authority:
            return CommandHint.LOW_AUTHORITY
        is_usage = True
        for option in self._options:
            if option.key in options:
                if option.authority > user.authority:
                    return CommandHint.LOW_AUTHORITY
                if option.not_usage:
                    is_usage = False

        if not is_usage:
            return None
        max_usage = self.get_config("max_usage", meta)
        min_interval = self.get_config("min_interval", meta)
        if max_usage < math.inf or min_interval > 0:
            database = self.app.database
            if database is None:
                return update_usage(self.usage_name, user, max_usage, min_interval)
            return await database.check_and_consume_usage(
                self.usage_name, user, max_usage, min_interval
            )
        return None

    async def _send_hint(self, meta: Meta, hint: CommandHint, *params: Any) -> CommandHint:
        logger.debug("Command rejected", command=self.name, hint=hint.name)
        if self.config.show_warning:
            await self.app.send(meta, format_hint(hint, *params))
        return hint


__all__ = ["Command", "ParsedCommandLine", "ShortcutConfig"]
