"""
Margined Deploy - Artifacts

Locate compiled contract bytecode and fetch third-party artifacts.
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional, Union

import requests

log = logging.getLogger(__name__)

# cw20-base release used as the collateral token
CW20_BASE_URL = "https://github.com/CosmWasm/cw-plus/releases/download/v1.0.1/cw20_base.wasm"


class ArtifactStore:
    """Directory of compiled .wasm files."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path(self, name: str) -> Path:
        """
        Resolve an artifact file name.

        Raises:
            FileNotFoundError: artifact missing from the directory
        """
        path = self.directory / name
        if not path.is_file():
            raise FileNotFoundError(f"Artifact {name} not found in {self.directory}")
        return path

    def read(self, name: str) -> bytes:
        return self.path(name).read_bytes()

    def __contains__(self, name: str) -> bool:
        return (self.directory / name).is_file()


def fetch_artifact(url: str, dest: Union[str, Path], sha256: Optional[str] = None,
                   timeout: int = 60) -> Path:
    """
    Download an artifact unless it is already present.

    Args:
        url: Source URL
        dest: Target file path
        sha256: Expected hex digest (checked when given)

    Raises:
        ValueError: digest mismatch
        requests.HTTPError: download failed
    """
    dest = Path(dest)
    if dest.is_file():
        log.debug(f"Artifact {dest.name} already present")
        return dest

    log.info(f"Fetching {url}")
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    data = response.content

    if sha256 is not None:
        digest = hashlib.sha256(data).hexdigest()
        if digest.lower() != sha256.lower():
            raise ValueError(f"Checksum mismatch for {dest.name}: {digest} != {sha256}")

    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(data)
    log.info(f"Saved {dest} ({len(data)} bytes)")
    return dest
