from __future__ import annotations

from dataclasses import dataclass
from enum import Enum as _Enum
from typing import List, Optional, Tuple, Union


class Label(_Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    REPEATED = "repeated"


class ValueCategory(_Enum):
    """Underlying storage category of a field value."""

    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    DOUBLE = "double"
    FLOAT = "float"
    BOOL = "bool"
    ENUM = "enum"
    STRING = "string"
    MESSAGE = "message"


class FieldType(_Enum):
    DOUBLE = "double"
    FLOAT = "float"
    INT64 = "int64"
    UINT64 = "uint64"
    INT32 = "int32"
    FIXED64 = "fixed64"
    FIXED32 = "fixed32"
    BOOL = "bool"
    STRING = "string"
    GROUP = "group"
    MESSAGE = "message"
    BYTES = "bytes"
    UINT32 = "uint32"
    ENUM = "enum"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    SINT32 = "sint32"
    SINT64 = "sint64"

    @property
    def category(self) -> ValueCategory:
        return _CATEGORY_BY_TYPE[self]


_CATEGORY_BY_TYPE = {
    FieldType.DOUBLE: ValueCategory.DOUBLE,
    FieldType.FLOAT: ValueCategory.FLOAT,
    FieldType.INT64: ValueCategory.INT64,
    FieldType.UINT64: ValueCategory.UINT64,
    FieldType.INT32: ValueCategory.INT32,
    FieldType.FIXED64: ValueCategory.UINT64,
    FieldType.FIXED32: ValueCategory.UINT32,
    FieldType.BOOL: ValueCategory.BOOL,
    FieldType.STRING: ValueCategory.STRING,
    FieldType.GROUP: ValueCategory.MESSAGE,
    FieldType.MESSAGE: ValueCategory.MESSAGE,
    FieldType.BYTES: ValueCategory.STRING,
    FieldType.UINT32: ValueCategory.UINT32,
    FieldType.ENUM: ValueCategory.ENUM,
    FieldType.SFIXED32: ValueCategory.INT32,
    FieldType.SFIXED64: ValueCategory.INT64,
    FieldType.SINT32: ValueCategory.INT32,
    FieldType.SINT64: ValueCategory.INT64,
}

# Length-delimited types can never use packed encoding.
_UNPACKABLE_TYPES = (FieldType.STRING, FieldType.BYTES, FieldType.GROUP, FieldType.MESSAGE)


@dataclass(frozen=True)
class EnumValue:
    name: str
    number: int
    full_name: str


DefaultValue = Union[int, float, bool, str, EnumValue]


@dataclass(frozen=True)
class Enum:
    name: str
    full_name: str
    values: Tuple[EnumValue, ...] = ()


@dataclass(frozen=True)
class Field:
    name: str
    number: int
    label: Label
    type: FieldType
    containing_type: str
    type_name: str = ""
    default_value: Optional[DefaultValue] = None
    packed: Optional[bool] = None
    deprecated: Optional[bool] = None
    is_extension: bool = False

    @property
    def lowercase_name(self) -> str:
        return self.name.lower()

    @property
    def category(self) -> ValueCategory:
        return self.type.category

    @property
    def is_packable(self) -> bool:
        return self.label is Label.REPEATED and self.type not in _UNPACKABLE_TYPES


@dataclass(frozen=True)
class ExtensionRange:
    start: int
    end: int


@dataclass(frozen=True)
class Message:
    name: str
    full_name: str
    fields: Tuple[Field, ...] = ()
    nested_messages: Tuple[Message, ...] = ()
    enums: Tuple[Enum, ...] = ()
    extension_ranges: Tuple[ExtensionRange, ...] = ()


@dataclass(frozen=True)
class Method:
    name: str
    input_type: str
    output_type: str


@dataclass(frozen=True)
class Service:
    name: str
    full_name: str
    methods: Tuple[Method, ...] = ()


@dataclass(frozen=True)
class SchemaFile:
    name: str
    package: str = ""
    enums: Tuple[Enum, ...] = ()
    messages: Tuple[Message, ...] = ()
    services: Tuple[Service, ...] = ()
    dependencies: Tuple[str, ...] = ()

    @property
    def package_segments(self) -> List[str]:
        return [seg for seg in self.package.split(".") if seg]


def qualify(scope: str, name: str) -> str:
    """Join a dotted scope and a simple name."""
    return f"{scope}.{name}" if scope else name


