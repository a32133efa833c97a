"""protoc plugin entry point (protoc-gen-ruby).

Usage: protoc --plugin=protoc-gen-ruby --ruby_out=OUT_DIR foo.proto
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from google.protobuf.compiler import plugin_pb2

from protoc_ruby.context import MemoryContext
from protoc_ruby.descriptor_loader import DescriptorLoader
from protoc_ruby.errors import GenerationError
from protoc_ruby.generator.ruby_generator import generate_file
from protoc_ruby.log import setup_logging
from protoc_ruby.options import GeneratorOptions, parse_options

logger = logging.getLogger(__name__)


def generate_code(
    request: plugin_pb2.CodeGeneratorRequest,
    options: Optional[GeneratorOptions] = None,
) -> plugin_pb2.CodeGeneratorResponse:
    """Generate one Ruby file per requested proto file.

    A write failure is reported through response.error and stops the run;
    files generated before the failure are not returned. Options are parsed
    from request.parameter unless given.
    """
    response = plugin_pb2.CodeGeneratorResponse()
    response.supported_features = plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL

    if options is None:
        options = parse_options(request.parameter)
    loader = DescriptorLoader(request.proto_file)
    context = MemoryContext()

    for file_name in request.file_to_generate:
        schema = loader.load(file_name)
        try:
            generate_file(schema, context, request.parameter, options)
        except GenerationError as e:
            response.error = str(e)
            return response

    for name, content in context.items():
        response_file = response.file.add()
        response_file.name = name
        response_file.content = content
    logger.info("Generated %d file(s)", len(response.file))
    return response


def main() -> None:
    request_payload = sys.stdin.buffer.read()

    request = plugin_pb2.CodeGeneratorRequest()
    if request_payload:
        request.ParseFromString(request_payload)

    options = parse_options(request.parameter)
    setup_logging(options.log_level)

    response = generate_code(request, options)
    sys.stdout.buffer.write(response.SerializeToString())


if __name__ == "__main__":
    main()
