"""
chorus: command routing for chat bots

Plugins register commands, middleware and hooks against a scope of chat
identities (users, groups, discussion rooms); inbound events are matched
against those scopes and routed through a fixed execution pipeline.

=== FEATURES ===

SCOPES:
- Allow/deny sets per identity type with union, difference, intersection,
  complement and containment
- Canonical text form (``+group:100;-user:1,2``) that round-trips

COMMANDS:
- Command tree with ``parent.child`` and ``parent/child`` paths
- Declared arguments (``<required>``, ``[optional]``, ``...variadic``)
- Options with aliases, values, negation, defaults and validators
- Aliases and shortcuts (exact, fuzzy, prefix-only)

EXECUTION:
- Argument, option, authority and usage checks with user-facing hints
- Daily usage caps and minimum intervals, atomic per user
- Middleware chain and before/after hooks with fallthrough

Example:
    from chorus import App, MemoryDatabase, Meta

    app = App(database=MemoryDatabase())
    app.group(100).command("echo <text...>").action(lambda argv, text: argv.send(text))
    await app.receive(Meta.group_message(100, 42, "/echo hi"))
"""

from __future__ import annotations

import importlib
from typing import Any

from chorus.__version__ import __version__

_EXPORT_MAP = {
    'App': ('chorus.app', 'App'),
    'AppConfig': ('chorus.config', 'AppConfig'),
    'BoundContext': ('chorus.app', 'BoundContext'),
    'ChorusError': ('chorus.exceptions', 'ChorusError'),
    'Command': ('chorus.command', 'Command'),
    'CommandConfig': ('chorus.config', 'CommandConfig'),
    'CommandExecutionError': ('chorus.exceptions', 'CommandExecutionError'),
    'CommandHint': ('chorus.messages', 'CommandHint'),
    'ConfigurationError': ('chorus.exceptions', 'ConfigurationError'),
    'Context': ('chorus.scope', 'Context'),
    'ContextType': ('chorus.scope', 'ContextType'),
    'Database': ('chorus.protocols', 'Database'),
    'EventRouter': ('chorus.router', 'EventRouter'),
    'GroupData': ('chorus.database', 'GroupData'),
    'HANDLED': ('chorus.hooks', 'HANDLED'),
    'HookRegistry': ('chorus.hooks', 'HookRegistry'),
    'HttpSender': ('chorus.sender', 'HttpSender'),
    'MemoryDatabase': ('chorus.database', 'MemoryDatabase'),
    'Meta': ('chorus.meta', 'Meta'),
    'ParsedCommandLine': ('chorus.command', 'ParsedCommandLine'),
    'ScopeSet': ('chorus.scope', 'ScopeSet'),
    'Sender': ('chorus.protocols', 'Sender'),
    'SenderError': ('chorus.exceptions', 'SenderError'),
    'UserData': ('chorus.database', 'UserData'),
    'configure_logging': ('chorus.logging_config', 'configure_logging'),
    'get_logger': ('chorus.logging_config', 'get_logger'),
}


def __getattr__(name: str) -> Any:
    """Lazily import public symbols so ``import chorus`` stays cheap."""
    try:
        module_name, attr_name = _EXPORT_MAP[name]
    except KeyError as exc:
        raise AttributeError(f"module 'chorus' has no attribute {name!r}") from exc
    module = importlib.import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))


__all__ = ["__version__", *sorted(_EXPORT_MAP)]
