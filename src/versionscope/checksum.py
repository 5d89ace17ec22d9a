"""Checksums announced by plugins for downloaded files."""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path

from .exceptions import ChecksumMismatchError

logger = logging.getLogger(__name__)

# Preference order when a plugin announces several digests.
ALGORITHMS: tuple[str, ...] = ("sha256", "sha512", "sha1", "md5")

_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class Checksum:
    """A digest to verify; an empty algorithm means nothing to check."""

    algorithm: str = ""
    value: str = ""

    @property
    def is_none(self) -> bool:
        return not self.algorithm or not self.value

    @classmethod
    def pick(cls, sha256: str = "", sha512: str = "", sha1: str = "", md5: str = "") -> "Checksum":
        """Choose the strongest announced digest."""
        candidates = {"sha256": sha256, "sha512": sha512, "sha1": sha1, "md5": md5}
        for algorithm in ALGORITHMS:
            if candidates[algorithm]:
                return cls(algorithm=algorithm, value=candidates[algorithm].strip().lower())
        return NONE_CHECKSUM

    def compute(self, path: Path) -> str:
        digest = hashlib.new(self.algorithm)
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
        return digest.hexdigest()

    def verify(self, path: Path) -> None:
        """Check ``path`` against the digest.

        Raises:
            ChecksumMismatchError: If the file's digest differs
        """
        if self.is_none:
            logger.debug(f"No checksum provided for {path}, skipping verification")
            return

        expected = self.value.strip().lower()
        actual = self.compute(path)
        if actual != expected:
            raise ChecksumMismatchError(str(path), self.algorithm, expected, actual)
        logger.debug(f"Verified {self.algorithm} checksum of {path}")


NONE_CHECKSUM = Checksum()
