"""Streaming downloads of remote install sources."""

import logging
import os
import tempfile
from pathlib import Path
from urllib.parse import urlparse

import httpx
from rich.console import Console
from rich.progress import BarColumn
from rich.progress import DownloadColumn
from rich.progress import Progress
from rich.progress import TextColumn
from rich.progress import TransferSpeedColumn

from .exceptions import DownloadError
from .exceptions import ManifestNotFoundError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def is_remote(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def filename_from_url(url: str) -> str:
    name = Path(urlparse(url).path).name
    return name or "download"


class Downloader:
    """Downloads a URL into a temporary file next to the install tree.

    The body is fully written to a distinct temporary file before the caller
    moves or unpacks it, so a cancelled download never touches an existing
    install.

    Args:
        client: HTTP client to use; one is created from ``proxy`` otherwise
        proxy: Proxy URL for a created client
        show_progress: Render a progress bar on stderr
    """

    def __init__(self, client: httpx.Client | None = None, proxy: str | None = None, show_progress: bool = True):
        self._client = client
        self._proxy = proxy
        self.show_progress = show_progress

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(proxy=self._proxy, follow_redirects=True)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def download(self, url: str, dest_dir: Path, headers: dict[str, str] | None = None) -> Path:
        """Fetch ``url`` into a new file inside ``dest_dir``.

        The temporary file keeps the URL's filename as suffix so archive
        detection still works on it.

        Returns:
            Path of the downloaded file; the caller removes it

        Raises:
            ManifestNotFoundError: If the server answers 404
            DownloadError: On any other HTTP or transport failure
        """
        dest_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".download-", suffix=f"-{filename_from_url(url)}", dir=dest_dir)
        target = Path(tmp_name)
        logger.debug(f"Downloading {url} to {target}")

        try:
            with os.fdopen(fd, "wb") as f:
                with self.client.stream("GET", url, headers=headers or {}, follow_redirects=True) as response:
                    if response.status_code == 404:
                        raise ManifestNotFoundError(url)
                    if response.status_code >= 400:
                        raise DownloadError(f"download of {url} failed with HTTP {response.status_code}")

                    total = int(response.headers.get("content-length", 0) or 0)
                    if self.show_progress:
                        self._write_with_progress(response, f, total, filename_from_url(url))
                    else:
                        for chunk in response.iter_bytes(chunk_size=_CHUNK_SIZE):
                            f.write(chunk)
        except httpx.TimeoutException as e:
            target.unlink(missing_ok=True)
            raise DownloadError(f"request to {url} timed out") from e
        except httpx.HTTPError as e:
            target.unlink(missing_ok=True)
            raise DownloadError(f"failed to download {url}: {e}") from e
        except BaseException:
            target.unlink(missing_ok=True)
            raise

        return target

    def _write_with_progress(self, response: httpx.Response, f, total: int, label: str) -> None:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=Console(stderr=True),
            transient=True,
        ) as progress:
            task = progress.add_task(f"Downloading {label}", total=total or None)
            for chunk in response.iter_bytes(chunk_size=_CHUNK_SIZE):
                f.write(chunk)
                progress.update(task, advance=len(chunk))
