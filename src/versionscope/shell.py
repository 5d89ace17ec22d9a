"""Shell export text for the activation hook.

Each shell turns a mapping of variables (values may be ``UNSET``) into text
the hook evaluates. Output is sorted by variable name so identical
environments always produce identical text.
"""

import json
import os
import re
import shlex
from abc import ABC
from abc import abstractmethod
from collections.abc import Mapping

from .envs import UNSET
from .envs import Paths

_DRIVE_PATH = re.compile(r"^([A-Za-z]):[\\/]?(.*)$")


def to_git_bash_path(path: str) -> str:
    """Translate a Windows path for Git Bash: ``C:\\foo`` becomes ``/c/foo``."""
    match = _DRIVE_PATH.match(path)
    if not match:
        return path.replace("\\", "/")
    drive, rest = match.groups()
    rest = rest.replace("\\", "/")
    return f"/{drive.lower()}/{rest}" if rest else f"/{drive.lower()}"


class Shell(ABC):
    """Formats variable assignments for one shell."""

    name: str = ""
    path_separator: str = os.pathsep

    def export(self, variables: Mapping[str, object]) -> str:
        out = []
        for key in sorted(variables):
            value = variables[key]
            if value is UNSET or value is None:
                out.append(self.unset(key))
            else:
                out.append(self.set(key, str(value)))
        return "".join(out)

    def format_paths(self, paths: Paths) -> str:
        return paths.to_string(self.path_separator)

    @abstractmethod
    def set(self, key: str, value: str) -> str:
        pass

    @abstractmethod
    def unset(self, key: str) -> str:
        pass


class PosixShell(Shell):
    """bash and zsh. With ``git_bash`` set, PATH entries use Git Bash form."""

    path_separator = ":"

    def __init__(self, name: str = "bash", git_bash: bool = False):
        self.name = name
        self.git_bash = git_bash

    def format_paths(self, paths: Paths) -> str:
        if self.git_bash:
            return ":".join(to_git_bash_path(entry) for entry in paths)
        return super().format_paths(paths)

    def set(self, key: str, value: str) -> str:
        return f"export {key}={shlex.quote(value)};"

    def unset(self, key: str) -> str:
        return f"unset {key};"


class PowerShell(Shell):
    name = "pwsh"

    @staticmethod
    def _quote(value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def set(self, key: str, value: str) -> str:
        return f"$env:{key}={self._quote(value)};"

    def unset(self, key: str) -> str:
        return f"Remove-Item -Path {self._quote('env:/' + key)};"


class FishShell(Shell):
    name = "fish"
    path_separator = ":"

    @staticmethod
    def _quote(value: str) -> str:
        return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"

    def set(self, key: str, value: str) -> str:
        if key == "PATH":
            entries = " ".join(self._quote(entry) for entry in value.split(self.path_separator) if entry)
            return f"set -x -g PATH {entries};"
        return f"set -x -g {key} {self._quote(value)};"

    def unset(self, key: str) -> str:
        return f"set -e -g {key};"


class JsonShell(Shell):
    """Structured output for shells without eval (e.g. nushell).

    Produces ``{"envsToSet": {...}, "envsToUnset": [...]}`` with PATH as a
    list of entries.
    """

    name = "nushell"

    def export(self, variables: Mapping[str, object]) -> str:
        to_set: dict[str, object] = {}
        to_unset: list[str] = []
        for key in sorted(variables):
            value = variables[key]
            if key == "PATH":
                text = "" if value is UNSET or value is None else str(value)
                to_set[key] = [entry for entry in text.split(self.path_separator) if entry]
            elif value is UNSET or value is None:
                to_unset.append(key)
            else:
                to_set[key] = str(value)
        return json.dumps({"envsToSet": to_set, "envsToUnset": to_unset})

    def set(self, key: str, value: str) -> str:
        return json.dumps({"envsToSet": {key: value}, "envsToUnset": []})

    def unset(self, key: str) -> str:
        return json.dumps({"envsToSet": {}, "envsToUnset": [key]})


def new_shell(name: str) -> Shell:
    """Return the formatter for a shell name.

    Raises:
        ValueError: If the shell is not supported
    """
    key = name.lower()
    if key in ("bash", "zsh", "sh"):
        return PosixShell(key, git_bash=os.name == "nt")
    if key in ("pwsh", "powershell"):
        return PowerShell()
    if key == "fish":
        return FishShell()
    if key in ("nushell", "nu", "json"):
        return JsonShell()
    raise ValueError(f"unsupported shell: {name}")
