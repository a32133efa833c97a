from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
import tempfile
from typing import List, Optional, Sequence

from protoc_ruby.context import DirectoryContext
from protoc_ruby.descriptor_loader import DescriptorLoader, load_descriptor_set
from protoc_ruby.errors import DescriptorError, GenerationError
from protoc_ruby.generator.ruby_generator import generate_file
from protoc_ruby.log import setup_logging
from protoc_ruby.options import DEFAULT_INDENT, GeneratorOptions

logger = logging.getLogger(__name__)


def _find_proto_files(root: str) -> List[str]:
    files: List[str] = []
    for dirpath, _, filenames in os.walk(root):
        for fn in filenames:
            if fn.lower().endswith(".proto"):
                files.append(os.path.join(dirpath, fn))
    # Sort for deterministic output
    files.sort()
    return files


def run_protoc(proto_paths: Sequence[str], includes: Sequence[str]) -> bytes:
    """Invoke protoc and return a serialized FileDescriptorSet (imports included)."""
    seen = set()
    inc_args: List[str] = []
    for inc in includes:
        if inc and inc not in seen:
            seen.add(inc)
            inc_args.extend(["-I", inc])

    with tempfile.TemporaryDirectory() as td:
        desc_path = os.path.join(td, "descriptor_set.pb")
        cmd = ["protoc", "--include_imports", f"--descriptor_set_out={desc_path}"] + inc_args + list(proto_paths)
        logger.debug("Running %s", " ".join(cmd))
        try:
            subprocess.run(cmd, check=True, capture_output=True)
        except FileNotFoundError as e:
            raise RuntimeError("'protoc' not found. Please install Protocol Buffers compiler and ensure it is in PATH.") from e
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"protoc failed: {e.stderr.decode('utf-8', errors='ignore')}") from e

        with open(desc_path, "rb") as f:
            return f.read()


def _relative_to_includes(proto_path: str, includes: Sequence[str]) -> str:
    """Name protoc gives a file: its path relative to the first matching include dir."""
    abs_path = os.path.abspath(proto_path)
    for inc in includes:
        abs_inc = os.path.abspath(inc)
        if abs_path.startswith(abs_inc + os.sep):
            return os.path.relpath(abs_path, abs_inc).replace(os.sep, "/")
    return os.path.basename(proto_path)


def generate(
    loader: DescriptorLoader,
    file_names: Sequence[str],
    out_dir: str,
    options: Optional[GeneratorOptions] = None,
) -> List[str]:
    """Generate Ruby files for the named descriptors into out_dir.

    Returns list of generated file paths.
    """
    context = DirectoryContext(out_dir)
    generated: List[str] = []
    for file_name in file_names:
        schema = loader.load(file_name)
        ruby_name = generate_file(schema, context, options=options)
        generated.append(context.path_for(ruby_name))
    return generated


def run(
    protos: Sequence[str],
    out_dir: str,
    includes: Sequence[str] = (),
    descriptor_set: Optional[str] = None,
    options: Optional[GeneratorOptions] = None,
) -> List[str]:
    """Main pipeline: obtain descriptors, load, generate."""
    if descriptor_set:
        with open(descriptor_set, "rb") as f:
            loader = load_descriptor_set(f.read())
        # Without explicit files, generate everything in the set.
        file_names = list(protos) or loader.file_names
        return generate(loader, file_names, out_dir, options)

    proto_files: List[str] = []
    for proto in protos:
        if os.path.isdir(proto):
            proto_files.extend(_find_proto_files(proto))
        else:
            proto_files.append(proto)
    if not proto_files:
        return []

    include_dirs = list(includes) or sorted({os.path.dirname(os.path.abspath(p)) for p in proto_files})
    loader = load_descriptor_set(run_protoc(proto_files, include_dirs))
    file_names = [_relative_to_includes(p, include_dirs) for p in proto_files]
    return generate(loader, file_names, out_dir, options)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Generate Ruby protobuf classes from .proto files",
    )
    parser.add_argument(
        "--proto",
        action="append",
        default=[],
        help="Path to a .proto file or a directory containing .proto files (recursively). "
             "With --descriptor-set, the descriptor file name to generate. May be repeated.",
    )
    parser.add_argument(
        "-I", "--proto_path",
        dest="includes",
        action="append",
        default=[],
        help="Import search directory passed to protoc. May be repeated.",
    )
    parser.add_argument(
        "--descriptor-set",
        help="Read a serialized FileDescriptorSet instead of running protoc",
    )
    parser.add_argument("--out", required=True, help="Output directory for generated .pb.rb file(s)")
    parser.add_argument("--indent", type=int, default=DEFAULT_INDENT, help="Spaces per indentation level")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR (default: $PROTOC_RUBY_LOG_LEVEL or WARNING)")

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if not args.proto and not args.descriptor_set:
        parser.error("at least one --proto or a --descriptor-set is required")

    options = GeneratorOptions(indent=args.indent, log_level=args.log_level)
    try:
        generated = run(args.proto, args.out, args.includes, args.descriptor_set, options)
    except (RuntimeError, DescriptorError, GenerationError, OSError) as e:
        print(f"FATAL: {e}", file=sys.stderr)
        return 1

    if not generated:
        print(f"No .proto files found under: {', '.join(args.proto)}")
        return 0
    for path in generated:
        print(f"Generated: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
