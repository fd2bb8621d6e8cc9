"""
LogStore Class - Handles file I/O operations

This module manages the directory that uploaded result logs are kept in.
"""

import glob
import os
from typing import List

from perfreport.models.data_models import StoreStatus


class LogStore:
    """
    Manages result log storage and discovery.
    Responsibilities:
    - Save uploaded log files
    - Find log files matching a glob
    - Provide directory statistics
    """

    def __init__(self, directory: str):
        self.directory = directory

    def save_upload(self, name: str, content: bytes) -> str:
        """Save uploaded log file under its base name, returns the saved path"""
        if not content:
            raise ValueError("Empty file content")

        base = os.path.basename(name or "")
        if not base or base in (".", ".."):
            raise ValueError(f"Invalid file name: {name!r}")

        self._ensure_dir()
        path = os.path.join(self.directory, base)
        with open(path, "wb") as f:
            f.write(content)
        return path

    def find(self, pattern: str) -> List[str]:
        """Files under the store directory matching pattern (``**`` recurses)"""
        matches = glob.glob(os.path.join(self.directory, pattern), recursive=True)
        return sorted(p for p in matches if os.path.isfile(p))

    def stat(self) -> StoreStatus:
        """Get directory statistics"""
        exists = os.path.isdir(self.directory)
        files = self.find("**/*") if exists else []
        return StoreStatus(
            status="ok",
            log_dir_exists=exists,
            path=os.path.abspath(self.directory),
            file_count=len(files),
            size_bytes=sum(os.path.getsize(p) for p in files),
        )

    def _ensure_dir(self) -> None:
        """Create the store directory if needed"""
        os.makedirs(os.path.abspath(self.directory), exist_ok=True)
