"""Exceptions for versionscope."""


class VersionScopeError(Exception):
    """Base exception for all versionscope errors."""

    pass


class ConfigError(VersionScopeError):
    """Base exception for configuration errors."""

    pass


class ConfigFileError(ConfigError):
    """Error reading, parsing or writing a configuration file."""

    pass


class ConfigValidationError(ConfigError):
    """Error validating configuration data."""

    pass


class NotFoundError(VersionScopeError):
    """A tool or plugin is unknown."""

    pass


class PluginNotFoundError(NotFoundError):
    """No plugin is installed or registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(f"plugin '{name}' not found")
        self.name = name


class VersionNotInstalledError(VersionScopeError):
    """The resolved version is not present on disk."""

    def __init__(self, label: str):
        super().__init__(f"{label} is not installed")
        self.label = label


class VersionAlreadyInstalledError(VersionScopeError):
    """The requested (or resolved) version is already installed."""

    def __init__(self, label: str):
        super().__init__(f"{label} is already installed")
        self.label = label


class ChecksumMismatchError(VersionScopeError):
    """A downloaded file does not match the checksum announced by the plugin."""

    def __init__(self, path: str, algorithm: str, expected: str, actual: str):
        super().__init__(f"{algorithm} checksum mismatch for {path}: expected {expected}, got {actual}")
        self.path = path
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual


class NoResultProvidedError(VersionScopeError):
    """An optional hook declined to answer.

    Not a failure: callers fall back to their own behavior.
    """

    pass


class PluginError(VersionScopeError):
    """A plugin hook failed or returned unusable data."""

    pass


class DownloadError(VersionScopeError):
    """Transport-level failure while fetching a remote resource."""

    pass


class ManifestNotFoundError(DownloadError):
    """The remote server answered that the resource does not exist."""

    def __init__(self, url: str):
        super().__init__(f"remote resource not found: {url}")
        self.url = url


class InstallError(VersionScopeError):
    """Installation failed; the partial version directory has been removed."""

    pass


class BatchError(VersionScopeError):
    """One or more items of a batch operation failed.

    Attributes:
        errors: Mapping of item label to the exception it raised
    """

    def __init__(self, errors: dict[str, Exception]):
        labels = ", ".join(sorted(errors))
        super().__init__(f"{len(errors)} item(s) failed: {labels}")
        self.errors = errors
