"""Environment variables and PATH composition.

Two merge primitives with deliberately different semantics:

- ``Paths.merge`` appends entries not yet present, so whatever was merged
  first keeps the earlier (higher precedence) PATH position.
- ``Vars.merge`` overwrites, so whatever was merged last wins.

``merge_by_scope_priority`` relies on that asymmetry.
"""

import os
from collections.abc import Iterable
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field

from .models import Scope


class _Unset:
    """Marker for a variable that must be removed from the environment."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


class Vars(dict):
    """Mapping of variable name to value or ``UNSET``."""

    def merge(self, other: Mapping[str, "str | _Unset"]) -> "Vars":
        """Overwrite with ``other``; the last merge wins for a key."""
        self.update(other)
        return self


class Paths:
    """Ordered set of unique PATH entries."""

    def __init__(self, entries: Iterable[str] = ()):
        self._entries: dict[str, None] = {}
        for entry in entries:
            self.add(entry)

    @classmethod
    def from_os(cls) -> "Paths":
        return cls.from_string(os.environ.get("PATH", ""))

    @classmethod
    def from_string(cls, value: str, separator: str = os.pathsep) -> "Paths":
        return cls(entry for entry in value.split(separator) if entry)

    def add(self, entry: str) -> bool:
        """Append ``entry`` if absent. Returns whether it was added."""
        entry = str(entry)
        if not entry or entry in self._entries:
            return False
        self._entries[entry] = None
        return True

    def remove(self, entry: str) -> None:
        self._entries.pop(str(entry), None)

    def merge(self, other: "Paths | Iterable[str]") -> "Paths":
        """Append every entry of ``other`` not already contained."""
        for entry in other:
            self.add(entry)
        return self

    def to_list(self) -> list[str]:
        return list(self._entries)

    def to_string(self, separator: str = os.pathsep) -> str:
        return separator.join(self._entries)

    def __iter__(self):
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry: object) -> bool:
        return str(entry) in self._entries

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Paths):
            return self.to_list() == other.to_list()
        return NotImplemented

    def __repr__(self) -> str:
        return f"Paths({self.to_list()!r})"

    def __str__(self) -> str:
        return self.to_string()


@dataclass
class Envs:
    """Variables and PATH entries contributed by one or more runtimes."""

    variables: Vars = field(default_factory=Vars)
    paths: Paths = field(default_factory=Paths)

    @property
    def is_empty(self) -> bool:
        return not self.variables and not self.paths

    def merge(self, other: "Envs") -> "Envs":
        self.paths.merge(other.paths)
        self.variables.merge(other.variables)
        return self


def merge_by_scope_priority(envs_by_scope: Mapping[Scope, Envs], scope_priority: Iterable[Scope]) -> Envs:
    """Combine per-scope envs so the highest-priority scope wins.

    Args:
        envs_by_scope: Envs of each scope; missing scopes contribute nothing
        scope_priority: Scopes ordered from highest to lowest priority

    Returns:
        New Envs whose PATH lists the highest-priority scope first and whose
        variables hold the highest-priority scope's values
    """
    order = list(scope_priority)
    result = Envs()

    # Paths keep first-seen position: iterate highest first.
    for scope in order:
        envs = envs_by_scope.get(scope)
        if envs is not None:
            result.paths.merge(envs.paths)

    # Vars keep the last write: iterate lowest first.
    for scope in reversed(order):
        envs = envs_by_scope.get(scope)
        if envs is not None:
            result.variables.merge(envs.variables)

    return result
