from __future__ import annotations


class GenerationError(Exception):
    """Raised when a generated file could not be written."""

    def __init__(self, file_name: str, message: str = ""):
        self.file_name = file_name
        super().__init__(message or f"An unknown error occurred writing file {file_name}")


class DescriptorError(Exception):
    """Raised when the descriptor input is inconsistent (unknown type, unresolved default)."""
