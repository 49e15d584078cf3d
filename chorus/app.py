"""
The application object and plugin-facing scoped views.

``App`` owns all process-scoped registries: commands by name and alias,
shortcuts, middleware and hooks. Plugins never mutate shared scope state;
they receive a ``BoundContext`` (the app plus an immutable ``Context``) and
register everything through it.

Usage:
    app = App(database=MemoryDatabase(), sender=my_sender)

    def apply(ctx: BoundContext, options):
        ctx.command("echo <message...>", "Repeat a message").action(
            lambda argv, message: argv.send(message)
        )

    app.group(100).plugin(apply)
    await app.receive(Meta.group_message(100, 42, "/echo hello"))
"""

from __future__ import annotations

import inspect
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Union

from chorus.command import Command, ParsedCommandLine, ShortcutConfig
from chorus.config import AppConfig, CommandConfig
from chorus.exceptions import (
    CommandNameError,
    ContextContainmentError,
    DuplicateCommandError,
    InvalidSubcommandError,
)
from chorus.hooks import HookRegistry
from chorus.logging_config import get_logger
from chorus.messages import COMMAND_NOT_FOUND, CommandHint
from chorus.meta import Meta
from chorus.protocols import Database, Sender
from chorus.router import EventRouter
from chorus.scope import Context
from chorus.types import HookHandler, Middleware

logger = get_logger(__name__)

_SEGMENT_SPLIT_RE = re.compile(r"(?=[./])")


@dataclass
class _PlannedCommand:
    """A command the registration walk will create."""

    name: str
    context: Context
    parent: Union[Command, _PlannedCommand, None]


class App:
    """Registry owner and entry point for inbound events."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        database: Optional[Database] = None,
        sender: Optional[Sender] = None,
    ) -> None:
        self.config = config or AppConfig()
        self.database = database
        self.sender = sender
        self.hooks = HookRegistry()
        self.context = Context.all()
        self._commands: list[Command] = []
        self._command_map: dict[str, Command] = {}
        self._shortcuts: list[ShortcutConfig] = []
        self._shortcut_map: dict[str, Command] = {}
        self._middlewares: list[tuple[Context, Middleware]] = []
        self.router = EventRouter(self)
        self._root = BoundContext(self, self.context)

    @classmethod
    def from_env(cls, database: Optional[Database] = None) -> App:
        """Build an app from ``CHORUS_*`` variables, with an HTTP sender when an endpoint is set."""
        config = AppConfig.from_env()
        sender = None
        if config.sender_endpoint:
            from chorus.sender import HttpSender

            sender = HttpSender(config.sender_endpoint, token=config.sender_token)
        return cls(config, database=database, sender=sender)

    # ------------------------------------------------------------------
    # Scopes
    # ------------------------------------------------------------------

    def scope(self, context: Context) -> BoundContext:
        return BoundContext(self, context)

    def users(self, ids: Optional[Iterable[int]] = None) -> BoundContext:
        return self.scope(Context.users(ids))

    def groups(self, ids: Optional[Iterable[int]] = None) -> BoundContext:
        return self.scope(Context.groups(ids))

    def discusses(self, ids: Optional[Iterable[int]] = None) -> BoundContext:
        return self.scope(Context.discusses(ids))

    def user(self, id: int) -> BoundContext:
        return self.users([id])

    def group(self, id: int) -> BoundContext:
        return self.groups([id])

    def discuss(self, id: int) -> BoundContext:
        return self.discusses([id])

    # ------------------------------------------------------------------
    # Root-scope registration shortcuts
    # ------------------------------------------------------------------

    def command(self, raw_name: str, description: Optional[str] = None, **config: Any) -> Command:
        return self._root.command(raw_name, description, **config)

    def middleware(self, middleware: Middleware) -> Middleware:
        return self._root.middleware(middleware)

    def prepend_middleware(self, middleware: Middleware) -> Middleware:
        return self._root.prepend_middleware(middleware)

    def remove_middleware(self, middleware: Middleware) -> bool:
        return self._root.remove_middleware(middleware)

    def on(self, event: str, handler: Optional[HookHandler] = None):
        return self._root.on(event, handler)

    def off(self, event: str, handler: HookHandler) -> bool:
        return self.hooks.off(event, handler)

    def before(self, event: str, handler: Optional[HookHandler] = None):
        return self._root.before(event, handler)

    def plugin(self, plugin: Any, options: Any = None) -> BoundContext:
        return self._root.plugin(plugin, options)

    def get_command(self, name: str, meta: Meta) -> Optional[Command]:
        return self._root.get_command(name, meta)

    async def run_command(self, name: str, meta: Meta, *args: Any, **kwargs: Any) -> Optional[CommandHint]:
        return await self._root.run_command(name, meta, *args, **kwargs)

    # ------------------------------------------------------------------
    # Registries
    # ------------------------------------------------------------------

    @property
    def commands(self) -> tuple[Command, ...]:
        return tuple(self._commands)

    def _register_alias(self, name: str, command: Command) -> None:
        previous = self._command_map.get(name)
        if previous is None:
            self._command_map[name] = command
        elif previous is not command:
            raise DuplicateCommandError(name, previous.name)

    def _unregister_alias(self, name: str, command: Command) -> None:
        if self._command_map.get(name) is command:
            del self._command_map[name]

    def _register_shortcut(self, shortcut: ShortcutConfig) -> None:
        previous = self._shortcut_map.get(shortcut.name)
        if previous is not None and previous is not shortcut.command:
            raise DuplicateCommandError(shortcut.name, previous.name)
        self._shortcuts = [s for s in self._shortcuts if s.name != shortcut.name]
        self._shortcuts.append(shortcut)
        self._shortcut_map[shortcut.name] = shortcut.command

    def _get_command_by_raw_name(self, name: str) -> Optional[Command]:
        """Resolve ``foo``, ``parent/foo`` or ``parent/child`` (registered as ``parent.child``)."""
        name = name.strip().split(None, 1)[0].lower() if name.strip() else ""
        for candidate in (name.rsplit("/", 1)[-1], name, name.replace("/", ".")):
            command = self._command_map.get(candidate)
            if command is not None:
                return command
        return None

    def _create_command(
        self,
        raw_name: str,
        context: Context,
        description: Optional[str],
        config: dict[str, Any],
    ) -> Command:
        """Walk a command path, creating and linking nodes as needed.

        ``.child`` names a node ``<previous>.child``; ``/child`` names it
        ``child``. All checks run before the tree is touched.
        """
        path, _, declaration = raw_name.strip().partition(" ")
        if not path:
            raise CommandNameError(raw_name)
        overrides = dict(config)
        if description is not None:
            overrides["description"] = description
        CommandConfig().with_overrides(**overrides)

        steps: list[tuple[str, Any, Any]] = []
        planned: dict[str, _PlannedCommand] = {}
        adopted: dict[int, Any] = {}
        parent: Union[Command, _PlannedCommand, None] = None

        for segment in _SEGMENT_SPLIT_RE.split(path.lower()):
            if not segment:
                continue
            if segment[0] == ".":
                if parent is None:
                    raise InvalidSubcommandError(segment, "relative segment without a parent")
                name = parent.name + segment
            elif segment[0] == "/":
                name = segment[1:]
            else:
                name = segment
            if not name:
                raise CommandNameError(raw_name)

            existing = self._command_map.get(name) or planned.get(name)
            if existing is not None:
                if parent is not None:
                    ancestor = parent
                    while ancestor is not None:
                        if ancestor is existing:
                            raise InvalidSubcommandError(
                                name, "a command cannot be nested under itself"
                            )
                        ancestor = adopted.get(id(ancestor), ancestor.parent)
                    current_parent = adopted.get(id(existing), existing.parent)
                    if current_parent is not None:
                        if current_parent is not parent:
                            raise InvalidSubcommandError(
                                name, f"already a subcommand of {current_parent.name}"
                            )
                    elif parent.context.contain(existing.context):
                        adopted[id(existing)] = parent
                        steps.append(("adopt", existing, parent))
                    else:
                        raise ContextContainmentError(
                            name, existing.context.identifier, parent.context.identifier
                        )
                parent = existing
                continue

            node_context = context.intersect(parent.context) if parent is not None else context
            if node_context.is_noop:
                raise ContextContainmentError(name, node_context.identifier)
            node = planned[name] = _PlannedCommand(name, node_context, parent)
            steps.append(("create", node, parent))
            parent = node

        if parent is None:
            raise CommandNameError(raw_name)
        terminal_plan = parent

        created: dict[int, Command] = {}
        registered: list[Command] = []

        def resolve(node: Union[Command, _PlannedCommand, None]) -> Optional[Command]:
            if isinstance(node, _PlannedCommand):
                return created[id(node)]
            return node

        for kind, node, node_parent in steps:
            owner = resolve(node_parent)
            if kind == "adopt":
                node = resolve(node)
                node.parent = owner
                owner.children.append(node)
                logger.debug("Adopted subcommand", command=node.name, parent=owner.name)
                continue
            command = Command(
                node.name,
                declaration if node is terminal_plan else "",
                node.context,
                self,
            )
            created[id(node)] = command
            if owner is not None:
                command.parent = owner
                owner.children.append(command)
            self._commands.append(command)
            command.alias(node.name)
            logger.info("Registered command", command=command.name, context=command.context.identifier)
            registered.append(command)

        terminal = resolve(terminal_plan)
        if declaration.strip() and not isinstance(terminal_plan, _PlannedCommand):
            terminal.set_declaration(declaration)
        terminal.config = terminal.config.with_overrides(**overrides)
        for command in registered:
            self.hooks.emit("new-command", command)
        return terminal

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def send(self, meta: Meta, message: str) -> None:
        """Reply to the conversation ``meta`` came from."""
        if await self.hooks.serialize("before-send", meta, message, meta=meta):
            return
        if self.sender is None:
            logger.warning("No sender configured, dropping reply", context=meta.context_label)
            return
        await self.sender.send(meta.context_type, meta.context_id, message)
        await self.hooks.parallelize("send", meta, message, meta=meta)

    async def receive(self, meta: Meta) -> None:
        """Dispatch an inbound event."""
        await self.router.dispatch(meta)


@dataclass(frozen=True)
class BoundContext:
    """An ``App`` seen through a ``Context``: what plugins register against."""

    app: App
    context: Context

    # Algebra returns new views; the app is shared
    def _context_of(self, other: Union[BoundContext, Context]) -> Context:
        return other.context if isinstance(other, BoundContext) else other

    def plus(self, other: Union[BoundContext, Context]) -> BoundContext:
        return BoundContext(self.app, self.context.plus(self._context_of(other)))

    def minus(self, other: Union[BoundContext, Context]) -> BoundContext:
        return BoundContext(self.app, self.context.minus(self._context_of(other)))

    def intersect(self, other: Union[BoundContext, Context]) -> BoundContext:
        return BoundContext(self.app, self.context.intersect(self._context_of(other)))

    def inverse(self) -> BoundContext:
        return BoundContext(self.app, self.context.inverse())

    def users(self, ids: Optional[Iterable[int]] = None) -> BoundContext:
        return self.intersect(Context.users(ids))

    def groups(self, ids: Optional[Iterable[int]] = None) -> BoundContext:
        return self.intersect(Context.groups(ids))

    def discusses(self, ids: Optional[Iterable[int]] = None) -> BoundContext:
        return self.intersect(Context.discusses(ids))

    def match(self, meta: Meta) -> bool:
        return self.context.match(meta)

    def end(self) -> App:
        return self.app

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def command(self, raw_name: str, description: Optional[str] = None, **config: Any) -> Command:
        """Register (or extend) a command, e.g. ``ctx.command("teach.add <question>", authority=2)``."""
        return self.app._create_command(raw_name, self.context, description, config)

    def middleware(self, middleware: Middleware) -> Middleware:
        self.app._middlewares.append((self.context, middleware))
        return middleware

    def prepend_middleware(self, middleware: Middleware) -> Middleware:
        self.app._middlewares.insert(0, (self.context, middleware))
        return middleware

    def remove_middleware(self, middleware: Middleware) -> bool:
        for index, (context, registered) in enumerate(self.app._middlewares):
            if context == self.context and registered is middleware:
                del self.app._middlewares[index]
                return True
        return False

    def on(self, event: str, handler: Optional[HookHandler] = None):
        """Listen to ``event`` within this context; usable as a decorator."""
        if handler is None:
            return lambda func: self.app.hooks.on(event, func, self.context)
        return self.app.hooks.on(event, handler, self.context)

    def off(self, event: str, handler: HookHandler) -> bool:
        return self.app.hooks.off(event, handler, self.context)

    def before(self, event: str, handler: Optional[HookHandler] = None):
        return self.on(f"before-{event}", handler)

    def plugin(self, plugin: Any, options: Any = None) -> BoundContext:
        """Apply ``plugin(ctx, options)`` or ``plugin.apply(ctx, options)``; ``options=False`` skips it."""
        if options is False:
            return self
        apply: Optional[Callable[..., Any]] = getattr(plugin, "apply", None)
        if inspect.isfunction(plugin) or (apply is None and callable(plugin)):
            plugin(self, options)
        elif callable(apply):
            apply(self, options)
        else:
            raise TypeError(f"Invalid plugin: {plugin!r}")
        logger.debug(
            "Applied plugin",
            plugin=getattr(plugin, "name", None) or getattr(plugin, "__name__", type(plugin).__name__),
            scope=self.context.identifier,
        )
        return self

    # ------------------------------------------------------------------
    # Lookup and execution
    # ------------------------------------------------------------------

    def get_command(self, name: str, meta: Meta) -> Optional[Command]:
        command = self.app._get_command_by_raw_name(name)
        if command is None or not command.context.match(meta) or command.get_config("disable", meta):
            return None
        return command

    async def run_command(
        self,
        name: str,
        meta: Meta,
        args: Optional[list[str]] = None,
        options: Optional[dict[str, Any]] = None,
        rest: str = "",
    ) -> Optional[CommandHint]:
        """Execute a command directly, bypassing message parsing."""
        command = self.get_command(name, meta)
        if command is None:
            await self.app.send(meta, COMMAND_NOT_FOUND)
            return None
        options = dict(options or {})
        known = {option.key for option in command.options}
        argv = ParsedCommandLine(
            meta=meta,
            command=command,
            args=list(args or []),
            options=options,
            unknown=[key for key in options if key not in known],
            rest=rest,
        )
        meta.argv = argv
        return await command.execute(argv)


__all__ = ["App", "BoundContext"]
