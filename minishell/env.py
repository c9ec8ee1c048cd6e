"""Environment variables, shell state and ``$`` expansion."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

FIELD_SEPARATOR = "\x03"
"""Marks the boundaries between fields produced by unquoted expansion."""

_VARIABLE = re.compile(r"\$(\?|[A-Za-z_][A-Za-z0-9_]*)")


class Environment:
    """An ordered set of shell variables.

    A variable may exist without a value (``export NAME``); such variables
    are kept but are not passed on to child processes.
    """

    def __init__(self, entries: Iterable[tuple[str, str | None]] = ()) -> None:
        self._vars: dict[str, str | None] = {}
        for name, value in entries:
            self.set(name, value)

    def get(self, name: str) -> str | None:
        """Return the value of ``name``, or None if it is unset or has no value."""
        return self._vars.get(name)

    def set(self, name: str, value: str | None) -> None:
        """Give ``name`` a value, keeping its position if it already exists."""
        self._vars[name] = value

    def unset(self, name: str) -> None:
        """Remove ``name``; removing a missing variable does nothing."""
        self._vars.pop(name, None)

    def to_envp(self) -> list[str]:
        """Return ``NAME=value`` strings for every variable that has a value."""
        return [f"{name}={value}" for name, value in self._vars.items() if value is not None]

    def items(self) -> list[tuple[str, str | None]]:
        """Return ``(name, value)`` pairs in definition order."""
        return list(self._vars.items())

    def __contains__(self, name: object) -> bool:
        return name in self._vars

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)

    def __repr__(self) -> str:
        return f"Environment({self.items()!r})"


@dataclass
class ShellState:
    """State shared by every command the shell runs."""

    env: Environment = field(default_factory=Environment)
    last_status: int = 0


def env_from_strings(entries: Iterable[str]) -> Environment:
    """Build an environment from ``NAME=value`` strings.

    Raises ValueError if an entry has no ``=``.
    """
    env = Environment()
    for entry in entries:
        name, sep, value = entry.partition("=")
        if not sep:
            raise ValueError(f"malformed environment entry: {entry!r}")
        env.set(name, value)
    return env


def expand_variables(text: str, env: Environment, quoted: bool, last_status: int = 0) -> str:
    """Expand ``$NAME`` and ``$?`` in ``text``.

    Unknown variables expand to nothing. When ``quoted`` is false the result
    is split on spaces and the non-empty fields are joined with
    ``FIELD_SEPARATOR``.
    """

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name == "?":
            return str(last_status)
        return env.get(name) or ""

    expanded = _VARIABLE.sub(substitute, text)
    if quoted:
        return expanded
    return FIELD_SEPARATOR.join(word for word in expanded.split(" ") if word)