"""Map google.protobuf descriptor protos into the generator's model.

protoc hands plugins FileDescriptorProto messages whose type references are
already fully qualified (".pkg.Outer.Inner"). The loader strips the leading
dot, resolves enum defaults to EnumValue objects and records which options
were set explicitly.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from google.protobuf import descriptor_pb2 as d2

from protoc_ruby.errors import DescriptorError
from protoc_ruby.models import (
    DefaultValue,
    Enum,
    EnumValue,
    ExtensionRange,
    Field,
    FieldType,
    Label,
    Message,
    Method,
    SchemaFile,
    Service,
    ValueCategory,
    qualify,
)

logger = logging.getLogger(__name__)

FDP = d2.FieldDescriptorProto

FIELD_TYPE_MAP: Dict[int, FieldType] = {
    FDP.TYPE_DOUBLE: FieldType.DOUBLE,
    FDP.TYPE_FLOAT: FieldType.FLOAT,
    FDP.TYPE_INT64: FieldType.INT64,
    FDP.TYPE_UINT64: FieldType.UINT64,
    FDP.TYPE_INT32: FieldType.INT32,
    FDP.TYPE_FIXED64: FieldType.FIXED64,
    FDP.TYPE_FIXED32: FieldType.FIXED32,
    FDP.TYPE_BOOL: FieldType.BOOL,
    FDP.TYPE_STRING: FieldType.STRING,
    FDP.TYPE_GROUP: FieldType.GROUP,
    FDP.TYPE_MESSAGE: FieldType.MESSAGE,
    FDP.TYPE_BYTES: FieldType.BYTES,
    FDP.TYPE_UINT32: FieldType.UINT32,
    FDP.TYPE_ENUM: FieldType.ENUM,
    FDP.TYPE_SFIXED32: FieldType.SFIXED32,
    FDP.TYPE_SFIXED64: FieldType.SFIXED64,
    FDP.TYPE_SINT32: FieldType.SINT32,
    FDP.TYPE_SINT64: FieldType.SINT64,
}

LABEL_MAP: Dict[int, Label] = {
    FDP.LABEL_REQUIRED: Label.REQUIRED,
    FDP.LABEL_OPTIONAL: Label.OPTIONAL,
    FDP.LABEL_REPEATED: Label.REPEATED,
}


def _strip_dot(type_name: str) -> str:
    return type_name[1:] if type_name.startswith(".") else type_name


class DescriptorLoader:
    """Builds SchemaFile models from a set of FileDescriptorProto messages.

    All files must be registered before loading, since enum defaults may
    point into imported files.
    """

    def __init__(self, file_protos: Iterable[d2.FileDescriptorProto] = ()):
        self._protos: Dict[str, d2.FileDescriptorProto] = {}
        self._enums: Dict[str, Enum] = {}
        self._files: Dict[str, SchemaFile] = {}
        for file_proto in file_protos:
            self.add(file_proto)

    def add(self, file_proto: d2.FileDescriptorProto) -> None:
        self._protos[file_proto.name] = file_proto
        self._files.pop(file_proto.name, None)
        for enum_proto, scope in _walk_enum_protos(file_proto):
            enum = _build_enum(enum_proto, scope)
            self._enums[enum.full_name] = enum

    @property
    def file_names(self) -> List[str]:
        return list(self._protos)

    def load(self, file_name: str) -> SchemaFile:
        if file_name not in self._protos:
            raise DescriptorError(
                f"Unknown file '{file_name}'. Known files: {', '.join(self._protos)}"
            )
        if file_name not in self._files:
            self._files[file_name] = self._build_file(self._protos[file_name])
        return self._files[file_name]

    # -- builders --

    def _build_file(self, file_proto: d2.FileDescriptorProto) -> SchemaFile:
        package = file_proto.package
        messages = tuple(
            self._build_message(m, package) for m in file_proto.message_type
        )
        if file_proto.extension:
            logger.debug(
                "%s: skipping %d file-level extension(s)",
                file_proto.name,
                len(file_proto.extension),
            )
        schema = SchemaFile(
            name=file_proto.name,
            package=package,
            enums=tuple(self._enums[qualify(package, e.name)] for e in file_proto.enum_type),
            messages=messages,
            services=tuple(_build_service(s, package) for s in file_proto.service),
            dependencies=tuple(file_proto.dependency),
        )
        logger.debug(
            "Loaded %s: %d enum(s), %d message(s), %d service(s)",
            schema.name,
            len(schema.enums),
            len(schema.messages),
            len(schema.services),
        )
        return schema

    def _build_message(self, desc: d2.DescriptorProto, scope: str) -> Message:
        full_name = qualify(scope, desc.name)
        fields = [self._build_field(f, full_name, is_extension=False) for f in desc.field]
        fields.extend(self._build_field(f, full_name, is_extension=True) for f in desc.extension)
        return Message(
            name=desc.name,
            full_name=full_name,
            fields=tuple(fields),
            nested_messages=tuple(self._build_message(n, full_name) for n in desc.nested_type),
            enums=tuple(self._enums[qualify(full_name, e.name)] for e in desc.enum_type),
            extension_ranges=tuple(
                ExtensionRange(start=r.start, end=r.end) for r in desc.extension_range
            ),
        )

    def _build_field(self, fd: d2.FieldDescriptorProto, scope: str, is_extension: bool) -> Field:
        if fd.type not in FIELD_TYPE_MAP:
            raise DescriptorError(f"Unknown type {fd.type} for field '{scope}.{fd.name}'")
        field_type = FIELD_TYPE_MAP[fd.type]
        type_name = _strip_dot(fd.type_name) if fd.type_name else ""
        # An extension is registered on the message it extends.
        containing_type = _strip_dot(fd.extendee) if is_extension else scope

        options = fd.options
        return Field(
            name=fd.name,
            number=fd.number,
            label=LABEL_MAP.get(fd.label, Label.OPTIONAL),
            type=field_type,
            containing_type=containing_type,
            type_name=type_name,
            default_value=self._parse_default(fd, field_type, type_name),
            packed=options.packed if options.HasField("packed") else None,
            deprecated=options.deprecated if options.HasField("deprecated") else None,
            is_extension=is_extension,
        )

    def _parse_default(
        self,
        fd: d2.FieldDescriptorProto,
        field_type: FieldType,
        type_name: str,
    ) -> Optional[DefaultValue]:
        if not fd.HasField("default_value"):
            return None
        text = fd.default_value
        category = field_type.category
        try:
            if category in (
                ValueCategory.INT32,
                ValueCategory.INT64,
                ValueCategory.UINT32,
                ValueCategory.UINT64,
            ):
                return int(text)
            if category in (ValueCategory.DOUBLE, ValueCategory.FLOAT):
                return float(text)
        except ValueError as e:
            raise DescriptorError(
                f"Invalid default {text!r} for field '{fd.name}'"
            ) from e
        if category is ValueCategory.BOOL:
            return text == "true"
        if category is ValueCategory.STRING:
            return text
        if category is ValueCategory.ENUM:
            return self._resolve_enum_value(type_name, text, fd.name)
        raise DescriptorError(f"Field '{fd.name}' of type {field_type.value} cannot have a default")

    def _resolve_enum_value(self, enum_name: str, value_name: str, field_name: str) -> EnumValue:
        enum = self._enums.get(enum_name)
        if enum is None:
            raise DescriptorError(f"Field '{field_name}' refers to unknown enum '{enum_name}'")
        for value in enum.values:
            if value.name == value_name:
                return value
        raise DescriptorError(
            f"Default '{value_name}' of field '{field_name}' is not a value of enum '{enum_name}'"
        )


def _walk_enum_protos(file_proto: d2.FileDescriptorProto):
    """Yield (EnumDescriptorProto, scope) for every enum in the file."""
    package = file_proto.package
    for enum_proto in file_proto.enum_type:
        yield enum_proto, package

    def walk_message(desc: d2.DescriptorProto, scope: str):
        full_name = qualify(scope, desc.name)
        for enum_proto in desc.enum_type:
            yield enum_proto, full_name
        for nested in desc.nested_type:
            yield from walk_message(nested, full_name)

    for message in file_proto.message_type:
        yield from walk_message(message, package)


def _build_enum(enum_proto: d2.EnumDescriptorProto, scope: str) -> Enum:
    full_name = qualify(scope, enum_proto.name)
    return Enum(
        name=enum_proto.name,
        full_name=full_name,
        values=tuple(
            # Values are scoped under the enum (pkg.Color.RED), not under the
            # enum's parent as protoc names them (pkg.RED).
            EnumValue(name=v.name, number=v.number, full_name=qualify(full_name, v.name))
            for v in enum_proto.value
        ),
    )


def _build_service(svc: d2.ServiceDescriptorProto, package: str) -> Service:
    return Service(
        name=svc.name,
        full_name=qualify(package, svc.name),
        methods=tuple(
            Method(
                name=m.name,
                input_type=_strip_dot(m.input_type),
                output_type=_strip_dot(m.output_type),
            )
            for m in svc.method
        ),
    )


def load_descriptor_set(data: bytes) -> DescriptorLoader:
    """Parse a serialized FileDescriptorSet into a loader."""
    fds = d2.FileDescriptorSet()
    fds.ParseFromString(data)
    return DescriptorLoader(fds.file)
