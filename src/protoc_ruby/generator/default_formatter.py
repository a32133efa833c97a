from __future__ import annotations

import math
import struct

from protoc_ruby.errors import DescriptorError
from protoc_ruby.models import EnumValue, Field, ValueCategory
from protoc_ruby.naming import constantize

_INTEGER_CATEGORIES = (
    ValueCategory.INT32,
    ValueCategory.INT64,
    ValueCategory.UINT32,
    ValueCategory.UINT64,
)


def _to_float32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


def _non_finite_literal(value: float) -> str:
    if math.isnan(value):
        return "::Float::NAN"
    if value > 0:
        return "::Float::INFINITY"
    return "-::Float::INFINITY"


def format_double(value: float) -> str:
    """Shortest %g text that reads back as the same double."""
    if not math.isfinite(value):
        return _non_finite_literal(value)
    text = "%.15g" % value
    if float(text) != value:
        text = "%.17g" % value
    return text


def format_float(value: float) -> str:
    """Shortest %g text that reads back as the same 32-bit float."""
    if not math.isfinite(value):
        return _non_finite_literal(value)
    target = _to_float32(value)
    for precision in range(6, 10):
        text = "%.*g" % (precision, target)
        if _to_float32(float(text)) == target:
            return text
    return "%.9g" % target


def format_default(field: Field) -> str:
    """Render a field's declared default as a Ruby literal.

    String and bytes defaults are wrapped in double quotes as-is; embedded
    quotes and control characters are not escaped.
    """
    value = field.default_value
    if value is None:
        raise DescriptorError(f"Field '{field.name}' has no default value")

    category = field.category
    if category in _INTEGER_CATEGORIES:
        return str(int(value))
    if category is ValueCategory.DOUBLE:
        return format_double(float(value))
    if category is ValueCategory.FLOAT:
        return format_float(float(value))
    if category is ValueCategory.BOOL:
        return "true" if value else "false"
    if category is ValueCategory.ENUM:
        if not isinstance(value, EnumValue):
            raise DescriptorError(
                f"Enum field '{field.name}' default {value!r} is not a resolved enum value"
            )
        return constantize(value.full_name)
    if category is ValueCategory.STRING:
        return '"' + str(value) + '"'
    raise DescriptorError(
        f"Field '{field.name}' of category {category.value} cannot carry a default value"
    )
