import os

import pytest

from minishell.builtins import ShellExit
from minishell.env import Environment, ShellState
from minishell.executor import RedirectionError, apply_redirections, execute, find_executable
from minishell.heredoc import prepare_heredocs, read_heredoc
from minishell.lexer import split_with_quote, tokenize
from minishell.parser import Command, Redirection, RedirType, parse


@pytest.fixture
def std_fds():
    saved = (os.dup(0), os.dup(1))
    yield
    for target, fd in enumerate(saved):
        os.dup2(fd, target)
        os.close(fd)


@pytest.fixture
def state():
    return ShellState(Environment(os.environ.items()))


def _commands(line, state):
    return parse(tokenize(split_with_quote(line, state.env, state.last_status)))


def _make_tool(directory, name):
    directory.mkdir(exist_ok=True)
    tool = directory / name
    tool.write_text("#!/bin/sh\n")
    tool.chmod(0o755)
    return tool


def test_find_executable_searches_path(tmp_path):
    tool = _make_tool(tmp_path / "bin", "mytool")
    env = Environment([("PATH", str(tmp_path / "bin"))])
    assert find_executable("mytool", env) == str(tool)


def test_find_executable_missing_returns_none(tmp_path):
    env = Environment([("PATH", str(tmp_path))])
    assert find_executable("absent_tool", env) is None


def test_find_executable_keeps_names_with_slash():
    env = Environment([("PATH", "/usr/bin")])
    assert find_executable("./run.sh", env) == "./run.sh"


def test_find_executable_rejects_dotdot():
    env = Environment([("PATH", "/usr/bin")])
    assert find_executable("..", env) is None


def test_find_executable_without_path_uses_current_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "local").write_text("x")
    env = Environment()
    assert find_executable("local", env) == "./local"
    assert find_executable("other", env) is None


def test_find_executable_accepts_directory_in_path(tmp_path):
    (tmp_path / "thing").mkdir()
    env = Environment([("PATH", str(tmp_path))])
    assert find_executable("thing", env) == f"{tmp_path}/thing"


def test_apply_output_redirection(tmp_path, std_fds):
    target = tmp_path / "out.txt"
    apply_redirections(Command(["x"], [Redirection(RedirType.OUT, str(target))]))
    os.write(1, b"hello")
    assert target.read_bytes() == b"hello"


def test_apply_append_redirection(tmp_path, std_fds):
    target = tmp_path / "log.txt"
    target.write_text("a\n")
    apply_redirections(Command(["x"], [Redirection(RedirType.APPEND, str(target))]))
    os.write(1, b"b")
    assert target.read_text() == "a\nb"


def test_apply_input_redirection(tmp_path, std_fds):
    source = tmp_path / "in.txt"
    source.write_text("abc")
    apply_redirections(Command(["x"], [Redirection(RedirType.IN, str(source))]))
    assert os.fstat(0).st_ino == source.stat().st_ino
    data = os.read(0, 10)
    assert data == source.read_bytes() == b"abc"


def test_apply_missing_input_raises(tmp_path, std_fds):
    missing = str(tmp_path / "missing")
    with pytest.raises(RedirectionError) as info:
        apply_redirections(Command(["x"], [Redirection(RedirType.IN, missing)]))
    assert info.value.target == missing
    assert str(info.value).startswith(missing + ": ")


def test_apply_heredoc_redirection(std_fds):
    lines = iter(["line", "EOF"])
    fd = read_heredoc("EOF", Environment(), 0, lambda prompt: next(lines))
    redir = Redirection(RedirType.HEREDOC, "EOF", fd)
    apply_redirections(Command(["cat"], [redir]))
    assert os.read(0, 100) == b"line\n"
    assert redir.heredoc_fd is None


def test_apply_heredoc_without_descriptor_raises(std_fds):
    with pytest.raises(RedirectionError):
        apply_redirections(Command(["cat"], [Redirection(RedirType.HEREDOC, "EOF")]))


def test_execute_builtin_with_output_file(tmp_path, state):
    out = tmp_path / "out.txt"
    assert execute(_commands(f"echo hello > '{out}'", state), state) == 0
    assert out.read_text() == "hello\n"


def test_execute_pipeline(tmp_path, state):
    out = tmp_path / "out.txt"
    assert execute(_commands(f"echo hello | cat > '{out}'", state), state) == 0
    assert out.read_text() == "hello\n"


def test_execute_append_twice(tmp_path, state):
    out = tmp_path / "log.txt"
    execute(_commands(f"echo a >> '{out}'", state), state)
    execute(_commands(f"echo b >> '{out}'", state), state)
    assert out.read_text() == "a\nb\n"


def test_execute_command_not_found(state, capfd):
    status = execute(_commands("nosuchcommand_xyz", state), state)
    assert status == 127
    assert "minishell: nosuchcommand_xyz: command not found" in capfd.readouterr().err


def test_execute_missing_path(tmp_path, state, capfd):
    missing = tmp_path / "missing"
    assert execute(_commands(f"'{missing}'", state), state) == 127
    assert f"{missing}: No such file or directory" in capfd.readouterr().err


def test_execute_directory(tmp_path, state, capfd):
    assert execute(_commands(f"'{tmp_path}'", state), state) == 126
    assert f"{tmp_path}: is a directory" in capfd.readouterr().err


def test_execute_not_executable(tmp_path, state, capfd):
    script = tmp_path / "script"
    script.write_text("echo hi\n")
    script.chmod(0o644)
    assert execute(_commands(f"'{script}'", state), state) == 126
    assert "Permission denied" in capfd.readouterr().err


def test_execute_empty_command_name(state, capfd):
    assert execute(_commands("''", state), state) == 127
    assert "command not found" in capfd.readouterr().err


def test_pipeline_status_is_last_command(state):
    assert execute(_commands("echo a | exit 3", state), state) == 3
    assert state.last_status == 3


def test_stateful_builtin_runs_in_shell(state):
    execute(_commands("export FOO_EXEC=bar", state), state)
    assert state.env.get("FOO_EXEC") == "bar"
    execute(_commands("unset FOO_EXEC", state), state)
    assert "FOO_EXEC" not in state.env


def test_builtin_in_pipeline_does_not_change_shell(state):
    execute(_commands("export PIPED_VAR=bar | cat", state), state)
    assert "PIPED_VAR" not in state.env


def test_failed_input_redirection_stops_command(tmp_path, state, capfd):
    missing = tmp_path / "missing"
    out = tmp_path / "out.txt"
    assert execute(_commands(f"cat < '{missing}' > '{out}'", state), state) == 1
    assert str(missing) in capfd.readouterr().err
    assert not out.exists()


def test_exit_in_shell_raises(state):
    with pytest.raises(ShellExit) as info:
        execute(_commands("exit 4", state), state)
    assert info.value.status == 4


def test_execute_heredoc(tmp_path, state):
    out = tmp_path / "doc.txt"
    commands = _commands(f"cat << EOF > '{out}'", state)
    lines = iter(["first", "second", "EOF"])
    prepare_heredocs(commands, state.env, 0, lambda prompt: next(lines))
    assert execute(commands, state) == 0
    assert out.read_text() == "first\nsecond\n"
    assert commands[0].redirections[0].heredoc_fd is None


def test_execute_nothing_keeps_status(state):
    state.last_status = 5
    assert execute([], state) == 5