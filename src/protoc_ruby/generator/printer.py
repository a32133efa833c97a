from __future__ import annotations

from functools import lru_cache
from typing import Any, TextIO

from jinja2 import Environment, StrictUndefined, Template


def _get_template_env() -> Environment:
    return Environment(
        keep_trailing_newline=True,
        undefined=StrictUndefined,
        autoescape=False,
    )


_ENV = _get_template_env()


@lru_cache(maxsize=None)
def _compile(source: str) -> Template:
    return _ENV.from_string(source)


def render(source: str, **data: Any) -> str:
    """Substitute data into a template string ("{{ name }}" placeholders)."""
    if not data:
        return source
    return _compile(source).render(**data)


class Printer:
    """Line-oriented writer that tracks indentation.

    Text is indented at the start of every non-empty template line; blank
    lines are written without trailing whitespace. Substituted values are
    written as-is, so newlines inside them are never indented. Write errors
    from the underlying stream propagate to the caller.
    """

    def __init__(self, stream: TextIO, indent_width: int = 2):
        self._stream = stream
        self._indent_width = indent_width
        self._depth = 0
        self._at_line_start = True

    @property
    def depth(self) -> int:
        return self._depth

    def indent(self) -> None:
        self._depth += 1

    def outdent(self) -> None:
        if self._depth == 0:
            raise ValueError("outdent() without matching indent()")
        self._depth -= 1

    def print(self, source: str, **data: Any) -> None:
        for line in source.splitlines(keepends=True):
            if self._at_line_start and line != "\n":
                self._stream.write(" " * (self._indent_width * self._depth))
            self._stream.write(render(line, **data))
            self._at_line_start = line.endswith("\n")

    def newline(self) -> None:
        self.print("\n")
