import os

import pytest

from minishell.env import Environment
from minishell.heredoc import (
    HeredocInterrupted,
    close_heredocs,
    is_quoted_delimiter,
    prepare_heredocs,
    read_heredoc,
    strip_quotes,
)
from minishell.lexer import split_with_quote, tokenize
from minishell.parser import parse


def _reader(items, prompts=None):
    stream = iter(items)

    def read(prompt):
        if prompts is not None:
            prompts.append(prompt)
        item = next(stream, None)
        if isinstance(item, BaseException):
            raise item
        return item

    return read


def _drain(fd):
    with os.fdopen(fd) as handle:
        return handle.read()


def _is_open(fd):
    try:
        os.fstat(fd)
    except OSError:
        return False
    return True


@pytest.mark.parametrize(
    "text, expected",
    [("'EOF'", True), ('"EOF"', True), ("EOF", False), ("'EOF\"", False), ("", False), (None, False)],
)
def test_is_quoted_delimiter(text, expected):
    assert is_quoted_delimiter(text) is expected


@pytest.mark.parametrize("text, expected", [("'EOF'", "EOF"), ('"a b"', "a b"), ("EOF", "EOF"), ("'", "")])
def test_strip_quotes(text, expected):
    assert strip_quotes(text) == expected


def test_read_heredoc_expands_variables():
    env = Environment([("USER", "bob")])
    prompts = []
    fd = read_heredoc("EOF", env, 0, _reader(["hello $USER", "status $?", "EOF", "ignored"], prompts))
    assert _drain(fd) == "hello bob\nstatus 3\n".replace("3", "0")
    assert prompts == ["> ", "> ", "> "]


def test_read_heredoc_passes_last_status():
    fd = read_heredoc("EOF", Environment(), 7, _reader(["$?", "EOF"]))
    assert _drain(fd) == "7\n"


def test_quoted_delimiter_disables_expansion():
    env = Environment([("USER", "bob")])
    fd = read_heredoc("'EOF'", env, 0, _reader(["hello $USER", "EOF"]))
    assert _drain(fd) == "hello $USER\n"


def test_end_of_input_ends_document():
    fd = read_heredoc("EOF", Environment(), 0, _reader(["one", "two"]))
    assert _drain(fd) == "one\ntwo\n"


def test_empty_document():
    fd = read_heredoc("EOF", Environment(), 0, _reader(["EOF"]))
    assert _drain(fd) == ""


def test_interrupt_raises():
    with pytest.raises(HeredocInterrupted):
        read_heredoc("EOF", Environment(), 0, _reader(["line", KeyboardInterrupt()]))


def test_prepare_and_close_heredocs():
    commands = parse(tokenize(split_with_quote("cat << A | cat << B", Environment())))
    prepare_heredocs(commands, Environment(), 0, _reader(["first", "A", "second", "B"]))
    fds = [c.redirections[0].heredoc_fd for c in commands]
    assert all(_is_open(fd) for fd in fds)
    assert os.read(fds[1], 100) == b"second\n"
    close_heredocs(commands)
    assert [c.redirections[0].heredoc_fd for c in commands] == [None, None]
    assert not any(_is_open(fd) for fd in fds)


def test_prepare_interrupted_closes_earlier_documents():
    commands = parse(tokenize(split_with_quote("cat << A << B", Environment())))
    opened = []

    read = _reader(["x", "A", KeyboardInterrupt()])

    def tracking_read(prompt):
        first = commands[0].redirections[0].heredoc_fd
        if first is not None and first not in opened:
            opened.append(first)
        return read(prompt)

    with pytest.raises(HeredocInterrupted):
        prepare_heredocs(commands, Environment(), 0, tracking_read)
    assert len(opened) == 1
    assert not _is_open(opened[0])
    assert [r.heredoc_fd for r in commands[0].redirections] == [None, None]


def test_close_heredocs_without_documents_keeps_state():
    commands = parse(tokenize(split_with_quote("cat < in > out", Environment())))
    close_heredocs(commands)
    assert [r.heredoc_fd for r in commands[0].redirections] == [None, None]
    assert [r.file for r in commands[0].redirections] == ["in", "out"]