"""Running parsed commands: built-ins in the shell, pipelines in child processes."""

from __future__ import annotations

import contextlib
import os
import signal
import sys
from collections.abc import Iterator, Sequence

from minishell.builtins import ShellExit, is_stateful_builtin, run_builtin
from minishell.env import Environment, ShellState
from minishell.heredoc import close_heredocs
from minishell.parser import Command, CommandType, Redirection, RedirType

_FILE_MODE = 0o644
_OPEN_FLAGS = {
    RedirType.IN: os.O_RDONLY,
    RedirType.OUT: os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
    RedirType.APPEND: os.O_WRONLY | os.O_CREAT | os.O_APPEND,
}
_TARGET_FD = {RedirType.IN: 0, RedirType.OUT: 1, RedirType.APPEND: 1}


class RedirectionError(Exception):
    """Raised when a redirection cannot be set up."""

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"{target}: {reason}")


def _report(message: str) -> None:
    sys.stderr.flush()
    os.write(2, message.encode())


def find_executable(name: str, env: Environment) -> str | None:
    """Resolve a command name to a path, searching ``$PATH``.

    Names containing ``/`` are returned unchanged. Without ``PATH`` the
    current directory is tried. Returns None when nothing is found.
    """
    if "/" in name:
        return name
    if name == "..":
        return None
    search = env.get("PATH")
    if search is None:
        candidate = "./" + name
        return candidate if os.path.exists(candidate) else None
    for directory in (part for part in search.split(":") if part):
        candidate = f"{directory}/{name}"
        if os.path.isdir(candidate) or os.access(candidate, os.X_OK):
            return candidate
    return None


def _open_file(redir: Redirection) -> int:
    try:
        return os.open(redir.file, _OPEN_FLAGS[redir.type], _FILE_MODE)
    except OSError as exc:
        raise RedirectionError(redir.file, exc.strerror or "cannot open") from exc


def _redirect(redir: Redirection) -> None:
    if redir.type is RedirType.HEREDOC:
        fd = redir.heredoc_fd
        if fd is None:
            raise RedirectionError(redir.file, "here-document is not available")
        redir.heredoc_fd = None
        try:
            os.dup2(fd, 0)
        except OSError as exc:
            raise RedirectionError(redir.file, exc.strerror or "bad file descriptor") from exc
        finally:
            with contextlib.suppress(OSError):
                os.close(fd)
        return
    fd = _open_file(redir)
    try:
        os.dup2(fd, _TARGET_FD[redir.type])
    finally:
        os.close(fd)


def apply_redirections(command: Command) -> None:
    """Apply the command's redirections to descriptors 0 and 1, in order.

    Raises RedirectionError at the first one that fails.
    """
    for redir in command.redirections:
        _redirect(redir)


def _check_redirections(command: Command) -> None:
    for redir in command.redirections:
        if redir.type is not RedirType.HEREDOC:
            os.close(_open_file(redir))


@contextlib.contextmanager
def _saved_std_fds() -> Iterator[None]:
    saved = (os.dup(0), os.dup(1))
    try:
        yield
    finally:
        for target, fd in enumerate(saved):
            os.dup2(fd, target)
            os.close(fd)


def _exec_external(args: Sequence[str], env: Environment) -> int:
    name = args[0]
    path = find_executable(name, env)
    if path is not None:
        if not os.path.exists(path):
            if "/" in path:
                _report(f"minishell: {path}: No such file or directory\n")
                return 127
        elif os.path.isdir(path):
            _report(f"minishell: {path}: is a directory\n")
            return 126
        elif not os.access(path, os.X_OK):
            _report(f"minishell: {path}: Permission denied\n")
            return 126
        else:
            variables = {key: value for key, value in env.items() if value is not None}
            try:
                os.execve(path, list(args), variables)
            except OSError as exc:
                _report(f"minishell: {exc.strerror}\n")
                return 126
    _report(f"minishell: {name}: command not found\n")
    return 127


def _run_child(
    command: Command,
    state: ShellState,
    in_fd: int,
    pipe_fds: tuple[int, int] | None,
) -> int:
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    signal.signal(signal.SIGQUIT, signal.SIG_DFL)
    if in_fd != 0:
        os.dup2(in_fd, 0)
        os.close(in_fd)
    if pipe_fds is not None:
        read_end, write_end = pipe_fds
        os.close(read_end)
        os.dup2(write_end, 1)
        os.close(write_end)
    try:
        apply_redirections(command)
    except RedirectionError as exc:
        _report(f"{exc}\n")
        return 1
    name = command.name
    if name is None:
        return 0
    if name == "":
        _report("minishell: : command not found\n")
        return 127
    state.last_status = 0
    if command.type is CommandType.BUILTIN:
        with open(1, "w", closefd=False) as out, open(2, "w", closefd=False) as err:
            try:
                return run_builtin(command.args, state, out, err)
            except ShellExit as exc:
                return exc.status
    return _exec_external(command.args, state.env)


def _spawn_all(commands: Sequence[Command], state: ShellState) -> list[int]:
    pids: list[int] = []
    in_fd = 0
    for index, command in enumerate(commands):
        try:
            pipe_fds = os.pipe() if index < len(commands) - 1 else None
        except OSError as exc:
            _report(f"pipe: {exc.strerror}\n")
            break
        try:
            pid = os.fork()
        except OSError as exc:
            _report(f"fork: {exc.strerror}\n")
            if pipe_fds is not None:
                os.close(pipe_fds[0])
                os.close(pipe_fds[1])
            break
        if pid == 0:
            code = 1
            try:
                code = _run_child(command, state, in_fd, pipe_fds)
            finally:
                os._exit(code)
        pids.append(pid)
        if in_fd != 0:
            os.close(in_fd)
            in_fd = 0
        if pipe_fds is not None:
            os.close(pipe_fds[1])
            in_fd = pipe_fds[0]
    if in_fd != 0:
        os.close(in_fd)
    return pids


def _wait_all(pids: list[int], status: int) -> int:
    if not pids:
        return status
    *others, last = pids
    _, raw = os.waitpid(last, 0)
    if os.WIFSIGNALED(raw):
        sig = os.WTERMSIG(raw)
        if sig == signal.SIGINT:
            os.write(1, b"\n")
        elif sig == signal.SIGQUIT:
            os.write(1, b"Quit (core dumped)\n")
        status = 128 + sig
    else:
        status = os.WEXITSTATUS(raw)
    for pid in others:
        with contextlib.suppress(ChildProcessError):
            os.waitpid(pid, 0)
    return status


def _run_in_shell(command: Command, state: ShellState) -> None:
    sys.stdout.flush()
    with _saved_std_fds():
        try:
            apply_redirections(command)
        except RedirectionError as exc:
            _report(f"{exc}\n")
            state.last_status = 1
            return
        with open(1, "w", closefd=False) as out:
            run_builtin(command.args, state, out, sys.stderr)


def _run_pipeline(commands: Sequence[Command], state: ShellState) -> None:
    try:
        _check_redirections(commands[0])
    except RedirectionError as exc:
        _report(f"{exc}\n")
        state.last_status = 1
        return
    sys.stdout.flush()
    sys.stderr.flush()
    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        pids = _spawn_all(commands, state)
        state.last_status = _wait_all(pids, state.last_status)
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)


def execute(commands: Sequence[Command], state: ShellState) -> int:
    """Run a pipeline and return its status, also stored in ``state``.

    A lone ``cd``, ``export``, ``unset`` or ``exit`` runs inside the shell so
    that it can change its state; everything else runs in child processes.
    ShellExit from ``exit`` propagates.
    """
    if not commands:
        return state.last_status
    try:
        if len(commands) == 1 and is_stateful_builtin(commands[0].args):
            _run_in_shell(commands[0], state)
        else:
            _run_pipeline(commands, state)
    finally:
        close_heredocs(commands)
    return state.last_status