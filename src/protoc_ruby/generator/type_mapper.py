from __future__ import annotations

from typing import Dict

from protoc_ruby.errors import DescriptorError
from protoc_ruby.models import Field, FieldType
from protoc_ruby.naming import constantize

# Proto scalar type -> Ruby protobuf field class
SCALAR_TYPE_MAP: Dict[FieldType, str] = {
    FieldType.DOUBLE: "::Protobuf::Field::DoubleField",
    FieldType.FLOAT: "::Protobuf::Field::FloatField",
    FieldType.INT64: "::Protobuf::Field::Int64Field",
    FieldType.UINT64: "::Protobuf::Field::Uint64Field",
    FieldType.INT32: "::Protobuf::Field::Int32Field",
    FieldType.FIXED64: "::Protobuf::Field::Fixed64Field",
    FieldType.FIXED32: "::Protobuf::Field::Fixed32Field",
    FieldType.BOOL: "::Protobuf::Field::BoolField",
    FieldType.STRING: "::Protobuf::Field::StringField",
    FieldType.BYTES: "::Protobuf::Field::BytesField",
    FieldType.UINT32: "::Protobuf::Field::Uint32Field",
    FieldType.SFIXED32: "::Protobuf::Field::Sfixed32Field",
    FieldType.SFIXED64: "::Protobuf::Field::Sfixed64Field",
    FieldType.SINT32: "::Protobuf::Field::Sint32Field",
    FieldType.SINT64: "::Protobuf::Field::Sint64Field",
}

_REFERENCE_TYPES = (FieldType.ENUM, FieldType.MESSAGE, FieldType.GROUP)


def data_type(field: Field) -> str:
    """Return the Ruby DSL type token for a field."""
    if field.type in SCALAR_TYPE_MAP:
        return SCALAR_TYPE_MAP[field.type]
    if field.type in _REFERENCE_TYPES:
        if not field.type_name:
            raise DescriptorError(
                f"Field '{field.name}' of '{field.containing_type}' has type "
                f"{field.type.value} but no type name"
            )
        return constantize(field.type_name)
    raise DescriptorError(f"Unmapped field type {field.type!r} for field '{field.name}'")
