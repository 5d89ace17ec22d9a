"""On-disk layout and environment flags.

Builds the immutable ``PathMeta`` for one invocation from the user's home,
an optional shared root, the current directory and the session pid.

Layout::

    {home}/.versionscope/                 user home, global config, global shims
    {home}/.versionscope/sdks/{name}      global scope shims
    {home}/.versionscope/tmp/{day}-{pid}/ session dir (config + shims)
    {root}/installs/{tool}/v-{version}/   installed packages
    {root}/plugins/{name}/                plugins
    {cwd}/.versionscope/sdks/{name}       project scope shims
"""

import logging
import os
from pathlib import Path

from .models import PathMeta
from .models import SharedPaths
from .models import UserPaths
from .models import WorkingPaths
from .utils import begin_of_today

logger = logging.getLogger(__name__)

# Directory overrides
HOME_ENV = "VERSIONSCOPE_HOME"
ROOT_ENV = "VERSIONSCOPE_ROOT"
PLUGIN_DIR_ENV = "VERSIONSCOPE_PLUGIN_DIR"
CACHE_DIR_ENV = "VERSIONSCOPE_CACHE_DIR"
TEMP_DIR_ENV = "VERSIONSCOPE_TEMP_DIR"

# Set by the shell hook
HOOK_FLAG = "__VERSIONSCOPE_SHELL"
PID_FLAG = "__VERSIONSCOPE_PID"
CUR_TMP_PATH_FLAG = "__VERSIONSCOPE_CURTMPPATH"
TMUX_ENV = "TMUX"

DIR_NAME = ".versionscope"
TMP_DIR_NAME = "tmp"
INSTALLS_DIR_NAME = "installs"
PLUGINS_DIR_NAME = "plugins"
SDK_LINK_DIR_NAME = "sdks"
SETTINGS_FILENAME = "config.yaml"


def active_shell_name() -> str | None:
    return os.environ.get(HOOK_FLAG) or None


def get_pid() -> int:
    """Process correlation id: the hook's shell pid, else our parent pid."""
    value = os.environ.get(PID_FLAG, "")
    if value:
        try:
            return int(value)
        except ValueError:
            logger.debug(f"Ignoring malformed {PID_FLAG}={value!r}")
    return os.getppid()


def session_dir_name(pid: int) -> str:
    """Session directories are named ``{start-of-today}-{pid}``."""
    return f"{begin_of_today()}-{pid}"


def resolve_session_dir(user_temp: Path, pid: int) -> Path:
    """Return the session directory for this shell lineage.

    A child shell inherits the parent's directory through
    ``__VERSIONSCOPE_CURTMPPATH`` so sub-shells share one session's shims.
    Inside tmux the variable leaks from the server's environment into every
    pane, so it is ignored there and each pane gets its own session.
    """
    inherited = os.environ.get(CUR_TMP_PATH_FLAG, "")
    if inherited and not os.environ.get(TMUX_ENV):
        return Path(inherited)
    return user_temp / session_dir_name(pid)


def is_managed_path(path: str | Path) -> bool:
    """Whether a PATH entry points into a versionscope directory."""
    parts = Path(os.path.normpath(str(path))).parts
    return DIR_NAME in parts


def default_user_home() -> Path:
    return Path(os.environ.get(HOME_ENV) or Path.home() / DIR_NAME)


def new_path_meta(
    user_home: Path | None = None,
    shared_root: Path | None = None,
    current_dir: Path | None = None,
    pid: int | None = None,
    create_dirs: bool = True,
) -> PathMeta:
    """Create the path layout for one invocation.

    Args:
        user_home: Tool home directory; defaults to ``VERSIONSCOPE_HOME`` or ~/.versionscope
        shared_root: Shared install root; defaults to ``VERSIONSCOPE_ROOT`` or the user home
        current_dir: Working directory (project scope); defaults to the cwd
        pid: Session pid; defaults to ``get_pid()``
        create_dirs: Create the user-level directories that every command expects

    Returns:
        PathMeta describing every location
    """
    home = Path(user_home) if user_home else default_user_home()
    root = Path(shared_root) if shared_root else Path(os.environ.get(ROOT_ENV) or home)
    cwd = Path(current_dir) if current_dir else Path.cwd()
    temp = Path(os.environ.get(TEMP_DIR_ENV) or home / TMP_DIR_NAME)
    session_pid = pid if pid is not None else get_pid()

    meta = PathMeta(
        user=UserPaths(
            home=home,
            temp=temp,
            config=home / SETTINGS_FILENAME,
        ),
        shared=SharedPaths(
            root=root,
            installs=Path(os.environ.get(CACHE_DIR_ENV) or root / INSTALLS_DIR_NAME),
            plugins=Path(os.environ.get(PLUGIN_DIR_ENV) or root / PLUGINS_DIR_NAME),
            config=root / SETTINGS_FILENAME,
        ),
        working=WorkingPaths(
            directory=cwd,
            project_sdk_dir=cwd / DIR_NAME / SDK_LINK_DIR_NAME,
            session_sdk_dir=resolve_session_dir(temp, session_pid),
            global_sdk_dir=home / SDK_LINK_DIR_NAME,
        ),
    )

    if create_dirs:
        for directory in (meta.user.temp, meta.working.global_sdk_dir, meta.working.session_sdk_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Failed to create {directory}: {e}")

    return meta
