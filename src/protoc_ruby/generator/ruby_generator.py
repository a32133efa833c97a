"""Ruby protobuf DSL generator.

The output is built in two passes over the same type order. The first pass
declares every enum and message class with an empty body; the second
registers enum values and message fields. Field registrations reference
other types as constants, so all classes must exist before any field line
runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Union

from protoc_ruby.context import GeneratorContext
from protoc_ruby.errors import GenerationError
from protoc_ruby.generator.default_formatter import format_default
from protoc_ruby.generator.printer import Printer
from protoc_ruby.generator.type_mapper import data_type
from protoc_ruby.models import Enum, EnumValue, Field, Message, SchemaFile, Service
from protoc_ruby.naming import constantize, create_file_name, underscore
from protoc_ruby.options import GeneratorOptions

logger = logging.getLogger(__name__)

GENERATED_FILE_COMMENT = "This file is auto-generated. DO NOT EDIT!"

MESSAGE_REQUIRE = "protobuf/message"
SERVICE_REQUIRE = "protobuf/rpc/service"

COMMENT_TEMPLATE = "# {{ comment }}\n"
HEADER_COMMENT_TEMPLATE = "##\n# {{ comment }}\n#\n"
REQUIRE_TEMPLATE = "require '{{ lib }}'\n"
MODULE_TEMPLATE = "module {{ ns }}\n"
ENUM_CLASS_TEMPLATE = "class {{ class_name }} < ::Protobuf::Enum; end\n"
MESSAGE_CLASS_TEMPLATE = "class {{ class_name }} < ::Protobuf::Message; end\n"
ENUM_VALUE_TEMPLATE = "{{ enum_class }}.define :{{ name }}, {{ number }}\n"
EXTENSION_RANGE_TEMPLATE = "{{ message_class }}.extensions {{ range_start }}...{{ range_end }}\n"
FIELD_TEMPLATE = (
    "{{ message_class }}.{{ field_label }}("
    "{{ data_type }}, "
    ":{{ field_name }}, "
    "{{ tag_number }}"
    "{{ default_opt }}"
    "{{ packed_opt }}"
    "{{ deprecated_opt }}"
    "{{ extension_opt }}"
    ")\n"
)
SERVICE_CLASS_TEMPLATE = "class {{ class_name }} < ::Protobuf::Service\n"
RPC_TEMPLATE = "rpc :{{ name }}, {{ request_klass }}, {{ response_klass }}\n"

TypeNode = Union[Enum, Message]


@dataclass
class _EmitContext:
    """State owned by a single generate_file() call."""

    file: SchemaFile
    printer: Printer
    namespace: List[str]

    def relative_class_name(self, full_name: str) -> str:
        """Constant for a type relative to the enclosing package modules.

        Nested types keep their parent path (Outer::Inner) so the class is
        created inside its parent rather than in the package module.
        """
        prefix = self.file.package + "." if self.file.package else ""
        if prefix and full_name.startswith(prefix):
            full_name = full_name[len(prefix):]
        return constantize(full_name, leading_colons=False)


def iter_types(messages: Sequence[Message]) -> Iterator[TypeNode]:
    """Yield messages depth-first in declaration order.

    Each message is followed by its nested enums, then by its nested
    messages (recursively). Both emission passes use this order.
    """
    for message in messages:
        yield message
        for enum in message.enums:
            yield enum
        yield from iter_types(message.nested_messages)


# ---------------------------------------------------------------- general --


def _print_comment(ctx: _EmitContext, comment: str, as_header: bool = False) -> None:
    template = HEADER_COMMENT_TEMPLATE if as_header else COMMENT_TEMPLATE
    ctx.printer.print(template, comment=comment)


def _print_require(ctx: _EmitContext, lib: str) -> None:
    ctx.printer.print(REQUIRE_TEMPLATE, lib=lib)


def _print_generic_requires(ctx: _EmitContext) -> None:
    if ctx.file.messages:
        _print_require(ctx, MESSAGE_REQUIRE)
    if ctx.file.services:
        _print_require(ctx, SERVICE_REQUIRE)


def _print_import_requires(ctx: _EmitContext) -> None:
    if not ctx.file.dependencies:
        return
    ctx.printer.newline()
    _print_comment(ctx, "Imports", as_header=True)
    for dependency in ctx.file.dependencies:
        _print_require(ctx, create_file_name(dependency, as_import_target=True))


# ------------------------------------------------------------- namespaces --


def _open_namespace_modules(ctx: _EmitContext) -> None:
    ctx.printer.newline()
    for segment in ctx.file.package_segments:
        ctx.printer.print(MODULE_TEMPLATE, ns=constantize(segment, leading_colons=False))
        ctx.printer.indent()
        ctx.namespace.append(segment)


def _close_namespace_modules(ctx: _EmitContext) -> None:
    while ctx.namespace:
        ctx.namespace.pop()
        ctx.printer.outdent()
        ctx.printer.print("end\n")


# ------------------------------------------------------------------ enums --


def _print_enum_class(ctx: _EmitContext, enum: Enum) -> None:
    ctx.printer.print(ENUM_CLASS_TEMPLATE, class_name=ctx.relative_class_name(enum.full_name))


def _print_enum_value(ctx: _EmitContext, enum: Enum, value: EnumValue) -> None:
    ctx.printer.print(
        ENUM_VALUE_TEMPLATE,
        enum_class=constantize(enum.full_name),
        name=value.name,
        number=str(value.number),
    )


def _print_enum_values(ctx: _EmitContext, enum: Enum) -> None:
    for value in enum.values:
        _print_enum_value(ctx, enum, value)
    ctx.printer.newline()


# --------------------------------------------------------------- messages --


def _print_message_class(ctx: _EmitContext, message: Message) -> None:
    ctx.printer.print(MESSAGE_CLASS_TEMPLATE, class_name=ctx.relative_class_name(message.full_name))


def _print_extension_ranges(ctx: _EmitContext, message: Message) -> None:
    for extension_range in message.extension_ranges:
        ctx.printer.print(
            EXTENSION_RANGE_TEMPLATE,
            message_class=constantize(message.full_name),
            range_start=str(extension_range.start),
            range_end=str(extension_range.end),
        )


def _field_options(field: Field) -> Dict[str, str]:
    options = {
        "default_opt": "",
        "packed_opt": "",
        "deprecated_opt": "",
        "extension_opt": "",
    }
    if field.default_value is not None:
        options["default_opt"] = f", :default => {format_default(field)}"
    if field.is_packable and field.packed is not None:
        options["packed_opt"] = f", :packed => {'true' if field.packed else 'false'}"
    if field.deprecated is not None:
        options["deprecated_opt"] = f", :deprecated => {'true' if field.deprecated else 'false'}"
    if field.is_extension:
        options["extension_opt"] = ", :extension => true"
    return options


def _print_message_field(ctx: _EmitContext, field: Field) -> None:
    ctx.printer.print(
        FIELD_TEMPLATE,
        message_class=constantize(field.containing_type),
        field_label=field.label.value,
        data_type=data_type(field),
        field_name=field.lowercase_name,
        tag_number=str(field.number),
        **_field_options(field),
    )


def _print_message_fields(ctx: _EmitContext, message: Message) -> None:
    _print_extension_ranges(ctx, message)
    for field in message.fields:
        _print_message_field(ctx, field)
    if message.fields:
        ctx.printer.newline()


# ------------------------------------------------------------------ passes --


def _print_declarations(ctx: _EmitContext) -> None:
    """First pass: empty class bodies for every enum and message."""
    if ctx.file.enums:
        _print_comment(ctx, "Enum Classes", as_header=True)
        for enum in ctx.file.enums:
            _print_enum_class(ctx, enum)
    ctx.printer.newline()

    if ctx.file.messages:
        _print_comment(ctx, "Message Classes", as_header=True)
        for node in iter_types(ctx.file.messages):
            if isinstance(node, Message):
                _print_message_class(ctx, node)
            else:
                _print_enum_class(ctx, node)
    ctx.printer.newline()


def _print_population(ctx: _EmitContext) -> None:
    """Second pass: enum values and message fields."""
    if ctx.file.enums:
        _print_comment(ctx, "Enum Values", as_header=True)
        for enum in ctx.file.enums:
            _print_enum_values(ctx, enum)
    ctx.printer.newline()

    if ctx.file.messages:
        _print_comment(ctx, "Message Fields", as_header=True)
        for node in iter_types(ctx.file.messages):
            if isinstance(node, Message):
                _print_message_fields(ctx, node)
            else:
                _print_enum_values(ctx, node)
    ctx.printer.newline()


# --------------------------------------------------------------- services --


def _print_service(ctx: _EmitContext, service: Service) -> None:
    ctx.printer.print(SERVICE_CLASS_TEMPLATE, class_name=constantize(service.name, leading_colons=False))
    ctx.printer.indent()
    for method in service.methods:
        ctx.printer.print(
            RPC_TEMPLATE,
            name=underscore(method.name),
            request_klass=constantize(method.input_type),
            response_klass=constantize(method.output_type),
        )
    ctx.printer.outdent()
    ctx.printer.print("end\n")


def _print_services(ctx: _EmitContext) -> None:
    if not ctx.file.services:
        return
    _print_comment(ctx, "Services", as_header=True)
    for service in ctx.file.services:
        _print_service(ctx, service)


def _emit(ctx: _EmitContext) -> None:
    _print_comment(ctx, GENERATED_FILE_COMMENT, as_header=True)
    _print_generic_requires(ctx)
    _print_import_requires(ctx)

    _open_namespace_modules(ctx)
    _print_declarations(ctx)
    _print_population(ctx)
    _print_services(ctx)
    _close_namespace_modules(ctx)


def generate_file(
    schema_file: SchemaFile,
    context: GeneratorContext,
    parameter: str = "",
    options: Optional[GeneratorOptions] = None,
) -> str:
    """Generate the Ruby source for one schema file.

    Args:
        schema_file: The resolved schema to generate.
        context: Output context that opens the target stream.
        parameter: The raw protoc parameter string; not used by the generator.
        options: Formatting options (indent width).

    Returns the generated file name. Raises GenerationError if the output
    could not be written; the partial file is discarded.
    """
    options = options or GeneratorOptions()
    file_name = create_file_name(schema_file.name)
    logger.debug("Generating %s from %s (parameter=%r)", file_name, schema_file.name, parameter)

    try:
        with context.open(file_name) as stream:
            ctx = _EmitContext(
                file=schema_file,
                printer=Printer(stream, indent_width=options.indent),
                namespace=[],
            )
            _emit(ctx)
    except OSError as e:
        logger.error("Failed writing %s: %s", file_name, e)
        context.discard(file_name)
        raise GenerationError(file_name) from e

    return file_name
