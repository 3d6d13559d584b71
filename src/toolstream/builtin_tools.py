"""Workspace tools served by the default in-process gateway."""

import os
import shlex
import subprocess

from toolstream.tools import LocalToolGateway, tool

SHELL_WHITELIST = ("ls", "cat", "grep", "pwd", "echo", "find", "whoami")
SHELL_TIMEOUT = 30.0


@tool
def read_file(path: str):
    """Reads content from the local workspace.

    Args:
        path: Path of the file to read.
    """
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as e:
        raise OSError(f"Failed to read file '{path}': {e}") from e


@tool
def list_directory(path: str):
    """Lists files in a directory.

    Args:
        path: Directory whose entries are listed.
    """
    try:
        entries = sorted(os.scandir(path), key=lambda e: e.name)
    except OSError as e:
        raise OSError(f"Failed to read directory '{path}': {e}") from e
    return "\n".join(os.path.join(path, e.name) for e in entries)


@tool
def shell_command(cmd: str):
    """Executes a safe terminal command.

    Only a small set of read-only programs may be run.

    Args:
        cmd: The command line, parsed with shell quoting rules.
    """
    try:
        parts = shlex.split(cmd)
    except ValueError as e:
        raise ValueError(f"Failed to parse command: {e}") from e

    if not parts:
        return "Empty command"

    program = parts[0]
    if program not in SHELL_WHITELIST:
        return f"Command '{program}' is not allowed."

    try:
        completed = subprocess.run(
            parts,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=SHELL_TIMEOUT,
        )
    except subprocess.TimeoutExpired as e:
        raise TimeoutError(f"Command timed out after {SHELL_TIMEOUT} seconds") from e
    except OSError as e:
        raise OSError(f"Failed to execute command: {e}") from e

    result = completed.stdout
    if completed.stderr:
        if result:
            result += "\n--- stderr ---\n"
        result += completed.stderr
    return result


def default_tools():
    return [read_file, list_directory, shell_command]


def default_gateway() -> LocalToolGateway:
    return LocalToolGateway(default_tools())
