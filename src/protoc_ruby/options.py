from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_INDENT = 2


@dataclass
class GeneratorOptions:
    indent: int = DEFAULT_INDENT
    log_level: Optional[str] = None


def parse_parameter_string(parameter: str) -> Dict[str, str]:
    """Split a protoc parameter string ("a=1,b=2") into a dict."""
    values: Dict[str, str] = {}
    if not parameter:
        return values
    for chunk in parameter.split(","):
        if not chunk:
            continue
        key, _, value = chunk.partition("=")
        key = key.strip()
        if not key:
            continue
        values[key] = value.strip()
    return values


def parse_options(parameter: str) -> GeneratorOptions:
    """Build GeneratorOptions from the protoc plugin parameter.

    Unknown keys are ignored with a warning. A non-numeric or negative
    indent falls back to the default.
    """
    options = GeneratorOptions()
    for key, value in parse_parameter_string(parameter).items():
        if key == "indent":
            if value.isdigit():
                options.indent = int(value)
            else:
                logger.warning("Ignoring invalid indent %r, using %d", value, DEFAULT_INDENT)
        elif key == "log_level":
            options.log_level = value or None
        else:
            logger.warning("Ignoring unknown generator option %r", key)
    return options
