"""Human-friendly, optionally colourised rendering of JSON log events."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import InitVar, dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, TextIO

from .logs import (
    CALLER_FIELD,
    ERROR_FIELD,
    KEY_MODULE,
    LEVEL_FIELD,
    MESSAGE_FIELD,
    TIMESTAMP_FIELD,
)

COLOR_BOLD = 1
COLOR_FAINT = 2
COLOR_RED = 31
COLOR_GREEN = 32
COLOR_YELLOW = 33

Formatter = Callable[[Any], str]

_RESERVED = {LEVEL_FIELD, TIMESTAMP_FIELD, MESSAGE_FIELD, CALLER_FIELD}

_LEVELS = {
    "debug": ("DBG", COLOR_YELLOW, False),
    "info": ("INF", COLOR_GREEN, False),
    "warn": ("WRN", COLOR_RED, False),
    "error": ("ERR", COLOR_RED, True),
    "fatal": ("FTL", COLOR_RED, True),
    "panic": ("PNC", COLOR_RED, True),
}

_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\\": "\\\\",
    '"': '\\"',
}


class _Number(str):
    """The original text of a JSON number."""


def default_parts_order() -> list[str]:
    return [TIMESTAMP_FIELD, LEVEL_FIELD, CALLER_FIELD, MESSAGE_FIELD]


def needs_quote(text: str) -> bool:
    """Whether ``text`` must be quoted when printed as a field value."""
    return any(
        ord(ch) < 0x20 or ord(ch) > 0x7E or ch in (" ", "\\", '"') for ch in text
    )


def colorize(value: Any, color: int, disabled: bool) -> str:
    """Wrap ``value`` in an ANSI colour code unless ``disabled``."""
    if disabled:
        return f"{value}"
    return f"\x1b[{color}m{value}\x1b[0m"


def _quote(text: str) -> str:
    out = []
    for ch in text:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ch.isprintable():
            out.append(ch)
        elif ord(ch) < 0x80:
            out.append(f"\\x{ord(ch):02x}")
        elif ord(ch) <= 0xFFFF:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(f"\\U{ord(ch):08x}")
    return '"' + "".join(out) + '"'


def _kitchen(moment: datetime) -> str:
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d}{suffix}"


def _text(value: Any) -> str:
    return "" if value is None else f"{value}"


def filter_for(*modules: str) -> Callable[["ConsoleWriter"], None]:
    """An option that lets events from the given modules through."""

    def apply(writer: "ConsoleWriter") -> None:
        writer.filtered_modules.update(modules)

    return apply


@dataclass
class ConsoleWriter:
    """Parses JSON events and writes them in a readable line format to ``out``.

    Events carrying a module are printed only if that module is in
    ``filtered_modules``. A ``time_format`` of None prints times as ``3:04PM``;
    otherwise it is a strftime pattern.
    """

    out: Optional[TextIO] = None
    no_color: bool = False
    time_format: Optional[str] = None
    parts_order: list[str] = field(default_factory=default_parts_order)

    format_timestamp: Optional[Formatter] = None
    format_level: Optional[Formatter] = None
    format_caller: Optional[Formatter] = None
    format_message: Optional[Formatter] = None
    format_field_name: Optional[Formatter] = None
    format_field_value: Optional[Formatter] = None
    format_err_field_name: Optional[Formatter] = None
    format_err_field_value: Optional[Formatter] = None

    filtered_modules: set[str] = field(default_factory=set)
    options: InitVar[Iterable[Callable[["ConsoleWriter"], None]]] = ()

    def __post_init__(self, options: Iterable[Callable[["ConsoleWriter"], None]]) -> None:
        if self.out is None:
            self.out = sys.stdout
        for option in options:
            option(self)

    def write(self, data: bytes | str) -> int:
        """Render one JSON event; return the number of input units consumed."""
        try:
            text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
            event = json.loads(text, parse_int=_Number, parse_float=_Number)
            plain = json.loads(text)
        except ValueError as exc:
            raise ValueError(f"cannot decode event: {exc}") from exc
        if not isinstance(event, dict):
            raise ValueError("cannot decode event: not a JSON object")

        module = event.pop(KEY_MODULE, None)
        if module is not None and str(module) not in self.filtered_modules:
            return len(data)

        parts = self.parts_order or default_parts_order()
        pieces: list[str] = []
        for part in parts:
            rendered = self._part_formatter(part)(event.get(part))
            if rendered:
                pieces.append(rendered)
                if part != parts[-1]:
                    pieces.append(" ")

        pieces.extend(self._render_fields(event, plain))
        pieces.append("\n")

        assert self.out is not None
        self.out.write("".join(pieces))
        return len(data)

    def _render_fields(self, event: dict, plain: dict) -> list[str]:
        fields = sorted(name for name in event if name not in _RESERVED)
        if ERROR_FIELD in fields:
            fields.remove(ERROR_FIELD)
            fields.insert(0, ERROR_FIELD)

        pieces: list[str] = []
        if fields:
            pieces.append(" ")

        for position, name in enumerate(fields):
            if name == ERROR_FIELD:
                name_fmt = self.format_err_field_name or self._default_err_field_name
                value_fmt = self.format_err_field_value or self._default_err_field_value
            else:
                name_fmt = self.format_field_name or self._default_field_name
                value_fmt = self.format_field_value or self._default_field_value

            pieces.append(name_fmt(name))

            value = event[name]
            if isinstance(value, _Number):
                pieces.append(value_fmt(str(value)))
            elif isinstance(value, str):
                pieces.append(value_fmt(_quote(value) if needs_quote(value) else value))
            else:
                encoded = json.dumps(
                    plain.get(name), separators=(",", ":"), sort_keys=True, ensure_ascii=False
                )
                pieces.append(value_fmt(encoded))

            if position < len(fields) - 1:
                pieces.append(" ")
        return pieces

    def _part_formatter(self, part: str) -> Formatter:
        if part == LEVEL_FIELD:
            return self.format_level or self._default_level
        if part == TIMESTAMP_FIELD:
            return self.format_timestamp or self._default_timestamp
        if part == MESSAGE_FIELD:
            return self.format_message or self._default_message
        if part == CALLER_FIELD:
            return self.format_caller or self._default_caller
        return self.format_field_value or self._default_field_value

    def _default_timestamp(self, value: Any) -> str:
        rendered = "<nil>"
        if isinstance(value, _Number):
            rendered = str(value)
        elif isinstance(value, str):
            rendered = value
            if "T" in value:
                try:
                    moment = datetime.fromisoformat(
                        value[:-1] + "+00:00" if value.endswith("Z") else value
                    )
                except ValueError:
                    pass
                else:
                    rendered = (
                        moment.strftime(self.time_format)
                        if self.time_format
                        else _kitchen(moment)
                    )
        return colorize(rendered, COLOR_FAINT, self.no_color)

    def _default_level(self, value: Any) -> str:
        if not isinstance(value, str) or isinstance(value, _Number):
            return ""
        label, color, bold = _LEVELS.get(value, ("???", COLOR_BOLD, False))
        if label == "???":
            return colorize(label, COLOR_BOLD, self.no_color)
        rendered = colorize(label, color, self.no_color)
        return colorize(rendered, COLOR_BOLD, self.no_color) if bold else rendered

    def _default_caller(self, value: Any) -> str:
        caller = value if isinstance(value, str) else ""
        if not caller:
            return ""
        try:
            cwd = os.getcwd()
        except OSError:
            cwd = None
        if cwd is not None:
            caller = caller.removeprefix(cwd) if hasattr(caller, "removeprefix") else caller
            caller = caller.removeprefix("/")
        return colorize(caller, COLOR_BOLD, self.no_color) + colorize(
            " >", COLOR_FAINT, self.no_color
        )

    def _default_message(self, value: Any) -> str:
        return _text(value)

    def _default_field_name(self, value: Any) -> str:
        return colorize(f"{value}: ", COLOR_FAINT, self.no_color)

    def _default_field_value(self, value: Any) -> str:
        return _text(value)

    def _default_err_field_name(self, value: Any) -> str:
        return colorize(f"{value}: ", COLOR_RED, self.no_color)

    def _default_err_field_value(self, value: Any) -> str:
        return colorize(_text(value), COLOR_RED, self.no_color)