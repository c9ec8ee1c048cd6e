# minishell

A small interactive command shell for POSIX systems. It reads a line at a
prompt, splits it into words and operators, expands variables, and runs the
resulting pipeline.

## Features

- Pipelines with `|`. Every command of a pipeline runs in its own child
  process; the status of the pipeline is the status of its last command.
- Redirections: `<`, `>`, `>>` and here-documents with `<<`. Here-documents
  are read at a `> ` prompt before the pipeline starts, up to the delimiter
  line or end of input.
- Single and double quotes; `$NAME` and `$?` expansion outside single quotes.
  Unquoted expansions are split into separate words on spaces; unknown
  variables expand to nothing.
- A quoted here-document delimiter (`<< 'EOF'` or `<< "EOF"`) turns off
  expansion inside the here-document.
- Builtins: `echo` (with `-n`, `-nnn`, ...), `cd`, `pwd`, `export`, `unset`,
  `env`, `exit`. A lone `cd`, `export`, `unset` or `exit` runs inside the
  shell itself so that it can change the shell's state; builtins inside a
  pipeline run in a child process.
- `export` with no arguments lists every variable, sorted by name, as
  `declare -x NAME="value"`. A name must start with a letter.
- Commands are looked up through `PATH`; when `PATH` is not set, the current
  directory is tried. Exit statuses follow the usual conventions: 127 for a
  command that is not found, 126 for one that cannot be executed, 128 plus
  the signal number for a command killed by a signal, 2 for a syntax error,
  and 130 after Ctrl-C at the prompt or during a here-document.

## Installation

```
pip install .
```

## Usage

Start the shell from an interactive terminal:

```
minishell
```

Standard input and standard output must both be terminals; otherwise the
shell prints an error and exits with status 1. Use Ctrl-D at the prompt to
leave; the shell then exits with the status of the last command. `exit N`
leaves with status `N` modulo 256.

Example session:

```
➜  minishell> export GREETING=hello
➜  minishell> echo $GREETING world | tr a-z A-Z
HELLO WORLD
➜  minishell> cat << EOF > notes.txt
> first line with $GREETING
> EOF
➜  minishell> exit 3
exit
```

## Using it as a library

The parsing stages can be used on their own:

```python
from minishell.env import env_from_strings
from minishell.lexer import split_with_quote, tokenize, check_syntax
from minishell.parser import parse

env = env_from_strings(["HOME=/home/demo", "USER=demo"])
words = split_with_quote("echo $USER > out.txt | wc -l", env, 0)
tokens = tokenize(words)
check_syntax(tokens)          # raises ShellSyntaxError on bad input
commands = parse(tokens)      # list of Command, each with args and redirections
```

The modules:

- `minishell.env`: `Environment`, `ShellState`, `env_from_strings`,
  `expand_variables`.
- `minishell.lexer`: `split_with_quote`, `tokenize`, `check_syntax`,
  `count_tokens`, `Token`, `TokenType`, `ShellSyntaxError`.
- `minishell.parser`: `parse`, `Command`, `Redirection`, `RedirType`,
  `CommandType`, `is_builtin`, `count_fields_in_word`.
- `minishell.heredoc`: `prepare_heredocs`, `read_heredoc`, `close_heredocs`,
  `HeredocInterrupted`.
- `minishell.builtins`: the `builtin_*` functions, `run_builtin`,
  `is_stateful_builtin`, `is_valid_long_long`, and `ShellExit`, which
  `exit` raises.
- `minishell.executor`: `execute`, `find_executable`, `apply_redirections`,
  `RedirectionError`.
- `minishell.shell`: `process_line` and `main`.

`minishell.shell.process_line(line, state, read_line)` runs one full line
against a `ShellState` and returns whether anything was run. The `read_line`
callable takes a prompt and returns a line, or None at end of input; it is
used to read here-document input.

## What it does not do

The shell understands only the syntax listed above. There is no `;`, `&&`
or `||`, no subshells or grouping, no wildcard expansion, no job control or
background commands, and no redirection of descriptors other than standard
input and output. It does not run script files: it only starts from an
interactive terminal.

## Running the tests

```
pip install .[test]
pytest
```