"""
Command line grammar: argument declarations, option descriptors and line parsing.

Argument declarations follow the command path::

    echo <message...>         # one required argument taking the raw rest of the line
    roll [count] [...faces]   # optional argument followed by a variadic one

Option expressions name one or more flags and an optional value placeholder::

    -p, --probability-strict <prob>
    -C, --no-redirect

The canonical option key is the snake_case form of the longest flag, with a
leading ``no-`` stripped for negated flags.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Mapping, NamedTuple, Optional, Sequence

_BRACKET_RE = re.compile(r"<([^>]+)>|\[([^\]]+)\]")
_TOKEN_RE = re.compile(r'"([^"]*)"|\'([^\']*)\'|(\S+)')
_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")


@dataclass(frozen=True)
class CommandArgument:
    """A positional argument declared by a command."""

    name: str
    required: bool = False
    variadic: bool = False
    no_segment: bool = False


def parse_arguments(declaration: str) -> list[CommandArgument]:
    """Parse the argument part of a command declaration."""
    result = []
    for match in _BRACKET_RE.finditer(declaration or ""):
        required = match.group(1) is not None
        name = (match.group(1) or match.group(2)).strip()
        variadic = no_segment = False
        if name.startswith("..."):
            name, variadic = name[3:], True
        elif name.endswith("..."):
            name, no_segment = name[:-3], True
        result.append(CommandArgument(name, required, variadic, no_segment))
    return result


class OptionValue(str, Enum):
    """Whether an option takes a value."""

    NONE = "none"
    REQUIRED = "required"
    OPTIONAL = "optional"


@dataclass
class CommandOption:
    """Descriptor for a declared command option."""

    raw_name: str
    names: tuple[str, ...]
    key: str
    longest: str
    description: Optional[str] = None
    value: OptionValue = OptionValue.NONE
    value_name: Optional[str] = None
    negated: bool = False
    authority: int = 0
    not_usage: bool = False
    required: bool = False
    hidden: bool = False
    default: Any = None
    is_string: bool = False
    validate: Optional[Callable[[Any], bool]] = field(default=None, repr=False)


def _snake(name: str) -> str:
    return name.replace("-", "_")


def parse_option(
    raw_name: str,
    description: Optional[str] = None,
    *,
    authority: int = 0,
    not_usage: bool = False,
    required: bool = False,
    hidden: bool = False,
    default: Any = None,
    is_string: bool = False,
    validate: Optional[Callable[[Any], bool]] = None,
) -> CommandOption:
    """Parse a raw flag expression such as ``-a, --alpha <value>`` into a descriptor."""
    names: list[str] = []
    value, value_name = OptionValue.NONE, None
    for token in re.split(r"[,\s]+", raw_name.strip()):
        if not token:
            continue
        if token[0] in "<[":
            value = OptionValue.REQUIRED if token[0] == "<" else OptionValue.OPTIONAL
            value_name = token[1:-1] or None
        else:
            names.append(token.lstrip("-") or token)
    if not names:
        raise ValueError(f"Option expression declares no flag: {raw_name!r}")

    longest = max(names, key=len)
    negated = longest.startswith("no-") and len(longest) > 3
    key = _snake(longest[3:] if negated else longest)
    return CommandOption(
        raw_name=raw_name.strip(),
        names=tuple(names),
        key=key,
        longest=longest,
        description=description,
        value=value,
        value_name=value_name,
        negated=negated,
        authority=authority,
        not_usage=not_usage,
        required=required,
        hidden=hidden,
        default=default,
        is_string=is_string,
        validate=validate,
    )


@dataclass
class ParsedLine:
    """Result of parsing the text following a command name."""

    args: list[str] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)
    unknown: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    rest: str = ""


class _Token(NamedTuple):
    text: str
    quoted: bool
    start: int
    end: int


def _tokenize(source: str) -> Iterator[_Token]:
    for match in _TOKEN_RE.finditer(source):
        if match.group(3) is not None:
            yield _Token(match.group(3), False, match.start(), match.end())
        else:
            text = match.group(1) if match.group(1) is not None else match.group(2)
            yield _Token(text, True, match.start(), match.end())


def _is_flag(token: _Token) -> bool:
    return (
        not token.quoted
        and len(token.text) > 1
        and token.text.startswith("-")
        and not _NUMBER_RE.match(token.text)
    )


def coerce_value(text: str, is_string: bool = False) -> Any:
    """Convert numeric-looking text to int or float unless the option wants strings."""
    if is_string or not _NUMBER_RE.match(text):
        return text
    return float(text) if "." in text else int(text)


def _lookup(name: str, opts_def: Mapping[str, CommandOption]) -> tuple[Optional[CommandOption], bool]:
    option = opts_def.get(name)
    if option is not None:
        return option, option.negated
    if name.startswith("no-") and name[3:] in opts_def:
        return opts_def[name[3:]], True
    return None, False


def _parse_flag(
    token: _Token,
    tokens: Sequence[_Token],
    index: int,
    opts_def: Mapping[str, CommandOption],
    result: ParsedLine,
) -> int:
    if token.text.startswith("--"):
        name, eq, explicit = token.text[2:].partition("=")
        names = [name]
    else:
        name, eq, explicit = token.text[1:].partition("=")
        names = list(name)
    explicit_value = explicit if eq else None

    for position, name in enumerate(names):
        last = position == len(names) - 1
        given = explicit_value if last else None
        option, negated = _lookup(name, opts_def)

        if option is None:
            result.unknown.append(name)
            result.options[_snake(name)] = True if given is None else coerce_value(given)
            continue

        if negated:
            value: Any = False
        elif option.value is OptionValue.NONE:
            value = True if given is None else coerce_value(given, option.is_string)
        else:
            if given is None and last and index < len(tokens) and not _is_flag(tokens[index]):
                given = tokens[index].text
                index += 1
            if given is None:
                if option.value is OptionValue.REQUIRED:
                    result.invalid.append(option.longest)
                    continue
                value = True
            else:
                value = coerce_value(given, option.is_string)

        if option.validate is not None and not isinstance(value, bool) and not option.validate(value):
            result.invalid.append(option.longest)
            continue
        result.options[option.key] = value
    return index


def parse_line(
    source: str,
    args_def: Sequence[CommandArgument] = (),
    opts_def: Optional[Mapping[str, CommandOption]] = None,
) -> ParsedLine:
    """Split a command line into positional args, options, unknown flags and rest.

    ``--`` ends parsing; the remaining raw text becomes ``rest``. When the next
    positional slot is declared ``name...`` it receives the raw remainder.
    """
    opts_def = opts_def or {}
    result = ParsedLine()
    tokens = list(_tokenize(source))
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if not token.quoted and token.text == "--":
            result.rest = source[token.end:].strip()
            break
        if _is_flag(token):
            index = _parse_flag(token, tokens, index, opts_def, result)
            continue
        position = len(result.args)
        slot = args_def[position] if position < len(args_def) else None
        if slot is not None and slot.no_segment and index < len(tokens):
            result.args.append(source[token.start:].strip())
            break
        result.args.append(token.text)
    return result


__all__ = [
    "CommandArgument",
    "CommandOption",
    "OptionValue",
    "ParsedLine",
    "coerce_value",
    "parse_arguments",
    "parse_line",
    "parse_option",
]
