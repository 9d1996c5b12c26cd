"""Filesystem helpers for pgprovisioner."""

import logging
import os
import shutil
from datetime import datetime, timezone

from rich.console import Console


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    @staticmethod
    def exists(path: str) -> bool:
        return os.path.lexists(path)

    @staticmethod
    def is_empty_dir(path: str) -> bool:
        return os.path.isdir(path) and not os.listdir(path)

    @staticmethod
    def read_text(path: str) -> str:
        with open(path, "r", encoding="utf-8") as file_obj:
            return file_obj.read()

    def append_text(self, target: str, content: str):
        """Append ``content`` to ``target``, keeping what is already there."""
        with open(target, "a", encoding="utf-8", newline="\n") as file_obj:
            file_obj.write(content)
        self.logger.debug("Appended %d characters to %s", len(content), target)

    def append_file(self, target: str, source: str):
        content = self.read_text(source)
        if content and not content.endswith("\n"):
            content += "\n"
        self.append_text(target, content)

    def remove_directory(self, path: str) -> bool:
        """Remove ``path`` recursively. Returns False when it was already gone."""
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            self.logger.debug("Directory already absent: %s", path)
            return False
        self.logger.debug("Removed directory: %s", path)
        return True

    def move_aside(self, path: str) -> str:
        suffix = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        destination = f"{path.rstrip(os.sep)}_{suffix}"
        os.rename(path, destination)
        self.logger.info("Moved existing directory %s to %s", path, destination)
        return destination

    def relocate_directory(self, source: str, destination: str):
        """Move the contents of ``source`` into ``destination`` and symlink it."""
        os.makedirs(destination, exist_ok=True)
        for item in os.listdir(source):
            shutil.move(os.path.join(source, item), os.path.join(destination, item))
        os.rmdir(source)
        os.symlink(destination, source)
        self.logger.debug("Relocated %s to %s", source, destination)
