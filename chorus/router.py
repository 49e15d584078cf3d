"""
Inbound event dispatch.

For a message event the router:

1. recognizes a command invocation (prefix, nickname, shortcut) and resolves
   the command among those whose context matches the event,
2. fetches only the user and group fields the resolved command will read,
3. publishes the event hooks (``message``, ``message/<type>``) in parallel,
4. runs the middleware chain serially: the built-in command middleware first,
   then user middleware in registration order. A middleware that does not
   await ``call_next`` ends the chain.

Exceptions from actions and middleware are logged and published to the
``error/command`` / ``error/middleware`` and ``error`` hooks; they never
escape ``dispatch``.
"""

from __future__ import annotations

import inspect
import re
from typing import TYPE_CHECKING, Any, Optional

from chorus.command import ParsedCommandLine
from chorus.exceptions import CommandExecutionError
from chorus.logging_config import LogContext, get_logger
from chorus.scope import ContextType
from chorus.types import Middleware, NextFunction

if TYPE_CHECKING:
    from chorus.app import App
    from chorus.meta import Meta

logger = get_logger(__name__)

_NICKNAME_SEPARATORS = r"[,，:：\s]+"


class EventRouter:
    """Routes inbound events to hooks, middleware and commands of an ``App``."""

    def __init__(self, app: App) -> None:
        self.app = app
        self._nickname_patterns = [
            re.compile(rf"^{re.escape(name)}{_NICKNAME_SEPARATORS}", re.IGNORECASE)
            for name in app.config.nicknames
        ]

    async def dispatch(self, meta: Meta) -> None:
        with LogContext(context=meta.context_label, user_id=meta.user_id):
            if meta.post_type == "message":
                await self.handle_message(meta)
                return
            for name in meta.event_names:
                await self.app.hooks.parallelize(name, meta, meta=meta)

    async def handle_message(self, meta: Meta) -> None:
        app = self.app
        argv = meta.argv = self.parse_command(meta)

        user_fields = set(app.config.base_user_fields)
        group_fields = set(app.config.base_group_fields)
        if argv is not None:
            argv.command.attach_user_fields(user_fields, argv.options)
            argv.command.attach_group_fields(group_fields)

        if app.database is not None:
            if meta.user_id is not None:
                meta.user = await app.database.fetch_user(meta.user_id, user_fields)
            if meta.context_type is ContextType.GROUP:
                meta.group = await app.database.fetch_group(meta.context_id, group_fields)

        if argv is not None and not self._is_available(argv):
            argv = meta.argv = None

        for name in meta.event_names:
            await app.hooks.parallelize(name, meta, meta=meta)

        middlewares: list[Middleware] = [self._execute_command]
        middlewares.extend(m for context, m in app._middlewares if context.match(meta))
        await self._run_chain(meta, middlewares, 0)

    # ------------------------------------------------------------------
    # Command recognition
    # ------------------------------------------------------------------

    def _strip_nickname(self, text: str) -> tuple[str, bool]:
        for pattern in self._nickname_patterns:
            match = pattern.match(text)
            if match:
                return text[match.end():], True
        return text, False

    def _strip_prefix(self, text: str) -> tuple[str, bool]:
        for prefix in sorted(self.app.config.command_prefixes, key=len, reverse=True):
            if prefix and text.startswith(prefix):
                return text[len(prefix):], True
        return text, False

    def parse_command(self, meta: Meta) -> Optional[ParsedCommandLine]:
        """Recognize a command invocation in a message, or return None."""
        text = meta.message.strip()
        if not text:
            return None
        body, addressed = self._strip_nickname(text)
        body, prefixed = self._strip_prefix(body.lstrip())
        meta.appellative = addressed
        body = body.strip()

        needs_marker = (
            meta.context_type is not ContextType.USER and self.app.config.require_prefix_in_groups
        )
        if body and (prefixed or addressed or not needs_marker):
            parts = body.split(None, 1)
            command = self.app._get_command_by_raw_name(parts[0])
            if command is not None and command.context.match(meta):
                line = command.parse(parts[1] if len(parts) > 1 else "")
                return ParsedCommandLine.from_line(meta, command, line)
        return self._match_shortcut(meta, body, prefixed or addressed)

    def _match_shortcut(self, meta: Meta, text: str, prefixed: bool) -> Optional[ParsedCommandLine]:
        for shortcut in self.app._shortcuts:
            command = shortcut.command
            if shortcut.prefix and not prefixed:
                continue
            if text == shortcut.name:
                remainder = ""
            elif shortcut.fuzzy and text.startswith(shortcut.name):
                remainder = text[len(shortcut.name):].strip()
            else:
                continue
            if not command.context.match(meta):
                continue
            args = list(shortcut.args)
            if remainder:
                if shortcut.one_arg:
                    args.append(remainder)
                else:
                    args.extend(remainder.split())
            return ParsedCommandLine(
                meta=meta,
                command=command,
                args=args,
                options=dict(shortcut.options),
                shortcut=shortcut,
            )
        return None

    def _is_available(self, argv: ParsedCommandLine) -> bool:
        meta, command = argv.meta, argv.command
        if command.get_config("disable", meta):
            return False
        shortcut = argv.shortcut
        if shortcut is not None and meta.user is not None:
            return shortcut.authority <= meta.user.authority
        return True

    # ------------------------------------------------------------------
    # Middleware chain
    # ------------------------------------------------------------------

    async def _run_chain(self, meta: Meta, middlewares: list[Middleware], index: int) -> Any:
        if index >= len(middlewares):
            return None
        middleware = middlewares[index]

        async def call_next() -> Any:
            return await self._run_chain(meta, middlewares, index + 1)

        try:
            result = middleware(meta, call_next)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as error:
            logger.exception(
                "Middleware failed",
                middleware=getattr(middleware, "__qualname__", repr(middleware)),
            )
            await self.app.hooks.parallelize("error/middleware", error, meta, meta=meta)
            await self.app.hooks.parallelize("error", error)
            return None

    async def _execute_command(self, meta: Meta, call_next: NextFunction) -> Any:
        argv = meta.argv
        if argv is None or argv.command is None:
            return await call_next()
        command = argv.command
        try:
            with LogContext(command=command.name):
                return await command.execute(argv, call_next)
        except Exception as error:
            logger.exception("Command failed", command=command.name)
            wrapped = CommandExecutionError(command.name, error)
            await self.app.hooks.parallelize("error/command", wrapped, meta, meta=meta)
            await self.app.hooks.parallelize("error", wrapped)
            return None


__all__ = ["EventRouter"]
