"""Data models for versionscope."""

from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path


class Scope(Enum):
    """Activation scope enumeration.

    Determines which configuration file and which shim directory an
    operation targets. Two orderings are used and must not be confused,
    see ``CONFIG_MERGE_ORDER`` and ``LOOKUP_ORDER``.
    """

    GLOBAL = "global"
    PROJECT = "project"
    SESSION = "session"

    def __str__(self) -> str:
        return self.value


# Lowest to highest priority when merging configs: the last one wins per tool.
CONFIG_MERGE_ORDER: tuple[Scope, ...] = (Scope.GLOBAL, Scope.SESSION, Scope.PROJECT)

# Highest to lowest priority when asking which version is active.
LOOKUP_ORDER: tuple[Scope, ...] = (Scope.PROJECT, Scope.SESSION, Scope.GLOBAL)


@dataclass
class ToolConfig:
    """Configuration of a single tool.

    Attributes:
        version: Requested or recorded version string
        attr: Extra key/value attributes (e.g. vendor); never required
    """

    version: str
    attr: dict[str, str] = field(default_factory=dict)

    def copy(self) -> "ToolConfig":
        return ToolConfig(version=self.version, attr=dict(self.attr))


@dataclass(frozen=True)
class Runtime:
    """One on-disk component: the main runtime or a bundled addition."""

    name: str
    version: str
    path: Path

    @property
    def label(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class RuntimePackage:
    """An installed version: main runtime plus optional additions.

    Attributes:
        main: Main runtime, always with a path once installed
        package_path: The ``v-{version}`` directory holding every component
        additions: Secondary tools shipped with the main runtime
    """

    main: Runtime
    package_path: Path
    additions: tuple[Runtime, ...] = ()

    @property
    def runtimes(self) -> tuple[Runtime, ...]:
        return (self.main, *self.additions)


@dataclass(frozen=True)
class UserPaths:
    """Per-user locations.

    Attributes:
        home: User home for this tool (e.g. ~/.versionscope)
        temp: Root for session directories
        config: User settings file (highest settings priority)
    """

    home: Path
    temp: Path
    config: Path


@dataclass(frozen=True)
class SharedPaths:
    """Locations shared by every user of an installation root."""

    root: Path
    installs: Path
    plugins: Path
    config: Path


@dataclass(frozen=True)
class WorkingPaths:
    """Locations derived from the current directory and shell session."""

    directory: Path
    project_sdk_dir: Path
    session_sdk_dir: Path
    global_sdk_dir: Path


@dataclass(frozen=True)
class PathMeta:
    """Static description of the on-disk layout.

    Immutable after construction. See ``versionscope.paths.new_path_meta``.
    """

    user: UserPaths
    shared: SharedPaths
    working: WorkingPaths
