"""The shell's built-in commands."""

from __future__ import annotations

import os
import re
import sys
from collections.abc import Sequence
from typing import TextIO

from minishell.env import Environment, ShellState

_LLONG_MAX = 2**63 - 1
_LLONG_MIN = -(2**63)
_INTEGER = re.compile(r"[+-]?[0-9]+", re.ASCII)
_ECHO_OPTION = re.compile(r"-n+", re.ASCII)

STATEFUL_BUILTINS = frozenset({"cd", "export", "unset", "exit"})


class ShellExit(Exception):
    """Raised by ``exit`` to end the shell with ``status``."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"exit {status}")


def _out(stream: TextIO | None) -> TextIO:
    return stream if stream is not None else sys.stdout


def _err(stream: TextIO | None) -> TextIO:
    return stream if stream is not None else sys.stderr


def _getcwd() -> str | None:
    try:
        return os.getcwd()
    except OSError:
        return None


def is_valid_long_long(text: str) -> bool:
    """Tell whether ``text`` is a signed decimal integer that fits in 64 bits."""
    if not _INTEGER.fullmatch(text):
        return False
    return _LLONG_MIN <= int(text) <= _LLONG_MAX


def builtin_echo(args: Sequence[str], stdout: TextIO | None = None) -> int:
    """Print the arguments; leading ``-n`` options suppress the newline."""
    out = _out(stdout)
    words = list(args[1:])
    no_newline = False
    while words and _ECHO_OPTION.fullmatch(words[0]):
        no_newline = True
        words.pop(0)
    out.write(" ".join(words))
    if not no_newline:
        out.write("\n")
    return 0


def builtin_pwd(stdout: TextIO | None = None, stderr: TextIO | None = None) -> int:
    """Print the current working directory."""
    try:
        cwd = os.getcwd()
    except OSError as exc:
        _err(stderr).write(f"pwd: {os.strerror(exc.errno or 0)}\n")
        return 1
    _out(stdout).write(cwd + "\n")
    return 0


def builtin_env(env: Environment, stdout: TextIO | None = None) -> int:
    """Print every variable as ``NAME=value``."""
    out = _out(stdout)
    for name, value in env.items():
        out.write(f"{name}={value or ''}\n")
    return 0


def _print_exports(env: Environment, out: TextIO) -> None:
    for name, value in sorted(env.items(), key=lambda item: item[0].encode()):
        out.write(f'declare -x {name}="{value or ""}"\n')


def _export_one(arg: str, env: Environment) -> None:
    pieces = [piece for piece in arg.split("=") if piece]
    if not pieces:
        return
    name = pieces[0]
    value = pieces[1] if len(pieces) > 1 else None
    if name not in env:
        env.set(name, value)
    elif value is not None:
        env.set(name, value)


def builtin_export(
    args: Sequence[str],
    env: Environment,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """Define variables, or list them all sorted by name when given none."""
    if len(args) < 2:
        _print_exports(env, _out(stdout))
        return 0
    for arg in args[1:]:
        if not (arg and arg[0].isascii() and arg[0].isalpha()):
            _err(stderr).write("export : not a valid identifier\n")
            return 1
        _export_one(arg, env)
    return 0


def builtin_unset(args: Sequence[str], env: Environment) -> int:
    """Remove the named variables."""
    for name in args[1:]:
        env.unset(name)
    return 0


def _update_pwd_vars(env: Environment, old_cwd: str | None, err: TextIO) -> None:
    cwd = _getcwd()
    if cwd is None:
        err.write("cd: error retrieving current directory\n")
    if "PWD" in env:
        env.set("PWD", cwd)
    if "OLDPWD" in env:
        env.set("OLDPWD", old_cwd)


def builtin_cd(args: Sequence[str], env: Environment, stderr: TextIO | None = None) -> int:
    """Change directory to the argument, or to ``$HOME`` without one."""
    err = _err(stderr)
    if len(args) > 2:
        err.write("cd: too many arguments\n")
        return 1
    old_cwd = _getcwd()
    if len(args) < 2:
        path = env.get("HOME")
        if path is None:
            err.write("cd: HOME not set\n")
            return 1
    else:
        path = args[1]
    try:
        os.chdir(path)
    except OSError as exc:
        err.write(f"cd: {os.strerror(exc.errno or 0)}\n")
        return 1
    _update_pwd_vars(env, old_cwd, err)
    return 0


def builtin_exit(args: Sequence[str], last_status: int = 0, stderr: TextIO | None = None) -> int:
    """Raise ShellExit with the requested status.

    With more than one argument nothing is exited and 1 is returned.
    """
    err = _err(stderr)
    err.write("exit\n")
    if len(args) <= 1:
        raise ShellExit(last_status)
    if len(args) == 2:
        arg = args[1]
        if not is_valid_long_long(arg):
            err.write(f"minishell: exit: {arg}: numeric argument required\n")
            raise ShellExit(2)
        raise ShellExit(int(arg) % 256)
    err.write("exit: too many arguments\n")
    return 1


def is_stateful_builtin(args: Sequence[str]) -> bool:
    """Tell whether the command changes the shell's own state."""
    return bool(args) and args[0] in STATEFUL_BUILTINS


def run_builtin(
    args: Sequence[str],
    state: ShellState,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """Run the built-in named by ``args[0]`` and record its status in ``state``."""
    name = args[0] if args else None
    if name == "echo":
        status = builtin_echo(args, stdout)
    elif name == "cd":
        status = builtin_cd(args, state.env, stderr)
    elif name == "pwd":
        status = builtin_pwd(stdout, stderr)
    elif name == "export":
        status = builtin_export(args, state.env, stdout, stderr)
    elif name == "unset":
        status = builtin_unset(args, state.env)
    elif name == "env":
        status = builtin_env(state.env, stdout)
    elif name == "exit":
        status = builtin_exit(args, state.last_status, stderr)
    else:
        raise ValueError(f"not a builtin: {name!r}")
    state.last_status = status
    return status