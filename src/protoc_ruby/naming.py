from __future__ import annotations

import re
from typing import List

RUBY_NAMESPACE_SEPARATOR = "::"

_PROTO_EXTENSIONS = (".protodevel", ".proto")


def _constantize_segment(segment: str) -> str:
    """Convert one name segment to a Ruby constant word.

    foo_bar -> FooBar, already CamelCase names are left as they are.
    """
    parts = segment.split("_")
    return "".join(p[:1].upper() + p[1:] for p in parts if p)


def constantize(qualified_name: str, leading_colons: bool = True) -> str:
    """Convert a dot-separated proto name to a Ruby constant path.

    Example: foo.bar_baz.Msg -> ::Foo::BarBaz::Msg
    """
    segments: List[str] = [
        _constantize_segment(seg) for seg in qualified_name.split(".") if seg
    ]
    constant = RUBY_NAMESPACE_SEPARATOR.join(segments)
    if leading_colons:
        return RUBY_NAMESPACE_SEPARATOR + constant
    return constant


def underscore(identifier: str) -> str:
    """Convert CamelCase names to snake_case.

    Handles:
    - CamelCase: DoThing -> do_thing
    - uppercase runs: GetHTTPInfo -> get_httpinfo
    - digits: Search2Results -> search2_results
    """
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", identifier)
    return s.lower()


def create_file_name(schema_path: str, as_import_target: bool = False) -> str:
    """Map a .proto path to the generated Ruby file name.

    foo/Bar.proto -> foo/bar.pb.rb, or foo/bar.pb when the name is used in a
    require statement.
    """
    path = schema_path.replace("\\", "/").lower()
    while path.startswith("./"):
        path = path[2:]
    for ext in _PROTO_EXTENSIONS:
        if path.endswith(ext):
            path = path[: -len(ext)]
            break
    if as_import_target:
        return path.lstrip("/") + ".pb"
    return path + ".pb.rb"
