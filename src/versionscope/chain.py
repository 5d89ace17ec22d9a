"""Priority-ordered chain of per-scope tool configs."""

import logging
from dataclasses import dataclass
from typing import Iterator

from .config_file import ConfigFile
from .models import Scope
from .models import ToolConfig

logger = logging.getLogger(__name__)


@dataclass
class ChainItem:
    config: ConfigFile | None
    scope: Scope


class ConfigChain:
    """Ordered sequence of ``(ConfigFile, Scope)`` pairs.

    Position encodes priority: later entries win. Merging happens per tool
    name, so a tool only present in a lower-priority file survives unless a
    higher-priority file names the same tool.

    Example:
        ```python
        chain = ConfigChain()
        chain.add(global_config, Scope.GLOBAL)
        chain.add(session_config, Scope.SESSION)
        chain.add(project_config, Scope.PROJECT)  # highest priority
        merged = chain.merge()
        ```
    """

    def __init__(self):
        self._items: list[ChainItem] = []

    def add(self, config: ConfigFile | None, scope: Scope) -> None:
        """Append a config; ``None`` stands for a scope that was not loaded."""
        self._items.append(ChainItem(config=config, scope=scope))

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ChainItem]:
        return iter(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def merge(self) -> ConfigFile:
        """Merge all configs by tool name, later entries overriding earlier ones.

        Returns:
            A new unbound ConfigFile holding copies of the winning entries
        """
        result = ConfigFile()
        for item in self._items:
            if item.config is None:
                continue
            for name, tool in item.config.tools.items():
                result.tools[name] = tool.copy()
        return result

    def all_tools(self) -> dict[str, str]:
        return self.merge().all_tools()

    def get_tool_config(self, name: str) -> tuple[ToolConfig, Scope] | None:
        """Find a tool from the highest to the lowest priority entry.

        Returns:
            ``(config, scope)`` of the first match, or None when no entry has the tool
        """
        for item in reversed(self._items):
            if item.config is None:
                continue
            tool = item.config.get_tool(name)
            if tool is not None:
                return tool, item.scope
        return None

    def get_tool_version(self, name: str) -> tuple[str, Scope] | None:
        found = self.get_tool_config(name)
        if found is None:
            return None
        tool, scope = found
        return tool.version, scope

    def get_by_scope(self, scope: Scope) -> ConfigFile | None:
        for item in self._items:
            if item.config is not None and item.scope is scope:
                return item.config
        return None

    def add_tool(self, name: str, version: str) -> None:
        """Record a tool in every config of the chain."""
        for item in self._items:
            if item.config is not None:
                item.config.set_tool(name, version)

    def remove_tool(self, name: str) -> None:
        """Remove a tool from every config of the chain."""
        for item in self._items:
            if item.config is not None:
                item.config.remove_tool(name)

    def save(self) -> None:
        """Save every distinct config in chain order.

        Empty configs whose file does not exist are skipped without writing.
        There is no cross-file transaction: a failure part way leaves the
        earlier files saved.
        """
        seen: set[int] = set()
        for item in self._items:
            if item.config is None or id(item.config) in seen:
                continue
            seen.add(id(item.config))
            item.config.save()
