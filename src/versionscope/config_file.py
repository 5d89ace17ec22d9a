"""Per-scope tool configuration files.

A directory holds at most one active tool config. Lookup precedence:

1. ``.versionscope.toml``
2. ``versionscope.toml``
3. ``.tool-versions`` (legacy ``name version`` lines, upgraded on read)

File format::

    [tools]
    java = {version = "21", vendor = "openjdk"}
    nodejs = "21.5.1"
"""

import logging
import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from .exceptions import ConfigFileError
from .exceptions import ConfigValidationError
from .models import ToolConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAMES: tuple[str, ...] = (".versionscope.toml", "versionscope.toml")
LEGACY_FILENAME = ".tool-versions"


def _attr_value(value: str) -> Any:
    """Booleans and canonical integers are written bare, everything else as a string."""
    if value in ("true", "false"):
        return value == "true"
    try:
        number = int(value)
    except ValueError:
        return value
    return number if str(number) == value else value


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_tool_config(name: str, data: Any) -> ToolConfig:
    """Parse one ``[tools]`` entry in either the simple or the extended form.

    Raises:
        ConfigValidationError: If the entry is neither a string nor a table
    """
    if isinstance(data, str):
        return ToolConfig(version=data)

    if isinstance(data, dict):
        version = data.get("version")
        attr = {key: _stringify(value) for key, value in data.items() if key != "version"}
        if not isinstance(version, str) or not version:
            version = "unknown"
        return ToolConfig(version=version, attr=attr)

    raise ConfigValidationError(f"invalid config for tool '{name}': expected string or table, got {type(data).__name__}")


def format_tool_config(config: ToolConfig) -> Any:
    """Build the TOML value of a tool entry: a string, or an inline table with attributes."""
    if not config.attr:
        return config.version

    table = tomlkit.inline_table()
    table.append("version", config.version)
    for key in sorted(config.attr):
        table.append(key, _attr_value(config.attr[key]))
    return table


class ConfigFile:
    """Tool configuration of one scope directory.

    ``path`` is where ``save()`` writes. It is ``None`` only for configs
    built in memory (e.g. a merge result) that were never bound to a file.
    """

    def __init__(self, tools: dict[str, ToolConfig] | None = None, path: Path | None = None):
        self.tools: dict[str, ToolConfig] = dict(tools or {})
        self.path = Path(path) if path is not None else None

    def __repr__(self) -> str:
        return f"ConfigFile(path={self.path!r}, tools={self.all_tools()!r})"

    # ===== Tool Access =====

    def set_tool(self, name: str, version: str, attr: dict[str, str] | None = None) -> None:
        self.tools[name] = ToolConfig(version=version, attr=dict(attr or {}))

    def get_tool(self, name: str) -> ToolConfig | None:
        return self.tools.get(name)

    def get_tool_version(self, name: str) -> str | None:
        config = self.tools.get(name)
        return config.version if config else None

    def remove_tool(self, name: str) -> bool:
        return self.tools.pop(name, None) is not None

    def all_tools(self) -> dict[str, str]:
        """Return every tool as ``name -> version``."""
        return {name: config.version for name, config in self.tools.items()}

    def sorted_names(self) -> list[str]:
        return sorted(self.tools)

    @property
    def is_new(self) -> bool:
        """Whether the config has never been written to its file."""
        return self.path is None or not self.path.exists()

    @property
    def is_empty(self) -> bool:
        return not self.tools

    # ===== Serialization =====

    def dumps(self) -> str:
        tools = tomlkit.table()
        for name in self.sorted_names():
            tools.append(name, format_tool_config(self.tools[name]))
        document = tomlkit.document()
        document.append("tools", tools)
        return tomlkit.dumps(document)

    @classmethod
    def loads(cls, text: str, path: Path | None = None) -> "ConfigFile":
        """Parse TOML text.

        Raises:
            ConfigFileError: If the text is not valid TOML
            ConfigValidationError: If ``[tools]`` or one of its entries has the wrong shape
        """
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            raise ConfigFileError(f"Failed to parse {path or 'config'}: {e}") from e

        raw_tools = data.get("tools", {})
        if not isinstance(raw_tools, dict):
            raise ConfigValidationError(f"invalid [tools] section in {path or 'config'}")

        tools = {name: parse_tool_config(name, value) for name, value in raw_tools.items()}
        return cls(tools=tools, path=path)

    @classmethod
    def load(cls, path: Path) -> "ConfigFile":
        """Load a config file; a missing file yields an empty config bound to ``path``."""
        path = Path(path)
        if not path.exists():
            return cls(path=path)

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigFileError(f"Failed to read configuration from {path}: {e}") from e

        return cls.loads(text, path=path)

    def save(self) -> None:
        """Save to the bound path.

        Raises:
            ConfigFileError: If the config has no path or the write fails
        """
        if self.path is None:
            if self.is_empty:
                return
            raise ConfigFileError("cannot save: config is not bound to a file")
        self.save_to_path(self.path)

    def save_to(self, directory: Path) -> None:
        """Save into ``directory``, picking the filename by precedence."""
        self.save_to_path(determine_config_path(Path(directory)))

    def save_to_path(self, path: Path) -> None:
        """Write the config to ``path`` and bind it there.

        An empty config never creates a file; an existing file is rewritten
        with an empty ``[tools]`` table. Parent directories are created lazily.
        """
        path = Path(path)
        if self.is_empty and not path.exists():
            logger.debug(f"Skip saving empty config to {path}")
            return

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.dumps(), encoding="utf-8")
        except OSError as e:
            raise ConfigFileError(f"Failed to write configuration to {path}: {e}") from e

        self.path = path


def determine_config_path(directory: Path) -> Path:
    """Return the file a new config in ``directory`` should be written to."""
    for filename in CONFIG_FILENAMES:
        candidate = directory / filename
        if candidate.exists():
            return candidate
    return directory / CONFIG_FILENAMES[0]


def read_legacy_file(path: Path) -> dict[str, str]:
    """Read a ``name version`` per line file; malformed lines are skipped."""
    record: dict[str, str] = {}
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise ConfigFileError(f"Failed to read {path}: {e}") from e

    for line in lines:
        line = line.split("#", 1)[0].strip()
        parts = line.split()
        if len(parts) == 2:
            record[parts[0]] = parts[1]
    return record


def load_config(directory: Path) -> ConfigFile:
    """Load the tool config of a directory.

    Reads the highest-priority TOML file. Without one, a legacy
    ``.tool-versions`` file is read and written once as ``.versionscope.toml``
    (the legacy file stays untouched). Without either, an empty config bound
    to the default filename is returned. The directory is never created here.
    """
    directory = Path(directory)

    for filename in CONFIG_FILENAMES:
        candidate = directory / filename
        if candidate.exists():
            if (directory / LEGACY_FILENAME).exists():
                logger.debug(f"Both {filename} and {LEGACY_FILENAME} exist in {directory}, using {filename}")
            return ConfigFile.load(candidate)

    legacy_path = directory / LEGACY_FILENAME
    target = directory / CONFIG_FILENAMES[0]
    if legacy_path.exists():
        config = ConfigFile(path=target)
        for name, version in read_legacy_file(legacy_path).items():
            config.set_tool(name, version)
        try:
            config.save_to_path(target)
            logger.debug(f"Upgraded {legacy_path} to {target}")
        except ConfigFileError as e:
            logger.warning(f"Failed to upgrade {legacy_path}: {e}")
        return config

    return ConfigFile(path=target)
