"""Output contexts: where generated files are written.

A context opens one named text stream per generated file. If generation of
a file fails the generator calls discard() so no partial file survives.
"""

from __future__ import annotations

import io
import logging
import os
from pathlib import Path
from typing import Dict, List, TextIO, Tuple

logger = logging.getLogger(__name__)


class GeneratorContext:
    def open(self, file_name: str) -> TextIO:
        raise NotImplementedError

    def discard(self, file_name: str) -> None:
        raise NotImplementedError


class _CapturingStream(io.StringIO):
    """StringIO that hands its contents back to the owning context on close."""

    def __init__(self, owner: MemoryContext, file_name: str):
        super().__init__()
        self._owner = owner
        self._file_name = file_name

    def close(self) -> None:
        if not self.closed:
            self._owner._store(self._file_name, self.getvalue())
        super().close()


class MemoryContext(GeneratorContext):
    """Collects generated files in memory, in the order they were opened."""

    def __init__(self):
        self._files: Dict[str, str] = {}
        self._order: List[str] = []

    def open(self, file_name: str) -> TextIO:
        if file_name not in self._order:
            self._order.append(file_name)
        self._files[file_name] = ""
        return _CapturingStream(self, file_name)

    def _store(self, file_name: str, content: str) -> None:
        if file_name in self._files:
            self._files[file_name] = content

    def discard(self, file_name: str) -> None:
        self._files.pop(file_name, None)
        if file_name in self._order:
            self._order.remove(file_name)

    @property
    def file_names(self) -> List[str]:
        return list(self._order)

    def content(self, file_name: str) -> str:
        return self._files[file_name]

    def items(self) -> List[Tuple[str, str]]:
        return [(name, self._files[name]) for name in self._order]


class DirectoryContext(GeneratorContext):
    """Writes generated files below an output directory."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        self.written: List[str] = []

    def path_for(self, file_name: str) -> str:
        return os.path.join(self.output_dir, *file_name.split("/"))

    def open(self, file_name: str) -> TextIO:
        path = self.path_for(file_name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        self.written.append(path)
        return open(path, "w", encoding="utf-8")

    def discard(self, file_name: str) -> None:
        path = self.path_for(file_name)
        if path in self.written:
            self.written.remove(path)
        if os.path.exists(path):
            logger.debug("Removing partially written %s", path)
            Path(path).unlink()
