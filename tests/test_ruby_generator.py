import io

import pytest

from protoc_ruby.context import GeneratorContext, MemoryContext
from protoc_ruby.errors import GenerationError
from protoc_ruby.generator.ruby_generator import generate_file, iter_types
from protoc_ruby.models import (
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
)
from protoc_ruby.options import GeneratorOptions


def _make_enum(full_name: str, values) -> Enum:
    return Enum(
        name=full_name.rsplit(".", 1)[-1],
        full_name=full_name,
        values=tuple(EnumValue(name, number, f"{full_name}.{name}") for name, number in values),
    )


def _make_field(owner: str, name: str, number: int, field_type: FieldType = FieldType.STRING,
                label: Label = Label.OPTIONAL, **kwargs) -> Field:
    return Field(name=name, number=number, label=label, type=field_type,
                 containing_type=owner, **kwargs)


def _make_message(full_name: str, fields=(), nested=(), enums=(), ranges=()) -> Message:
    return Message(
        name=full_name.rsplit(".", 1)[-1],
        full_name=full_name,
        fields=tuple(fields),
        nested_messages=tuple(nested),
        enums=tuple(enums),
        extension_ranges=tuple(ranges),
    )


def _generate(schema: SchemaFile, **kwargs) -> str:
    context = MemoryContext()
    file_name = generate_file(schema, context, **kwargs)
    return context.content(file_name)


class TestSimpleMessage:
    def test_full_output(self):
        schema = SchemaFile(
            name="a/b.proto",
            package="a.b",
            messages=(_make_message("a.b.Msg", [_make_field("a.b.Msg", "name", 1)]),),
        )

        result = _generate(schema)

        assert result == (
            "##\n"
            "# This file is auto-generated. DO NOT EDIT!\n"
            "#\n"
            "require 'protobuf/message'\n"
            "\n"
            "module A\n"
            "  module B\n"
            "\n"
            "    ##\n"
            "    # Message Classes\n"
            "    #\n"
            "    class Msg < ::Protobuf::Message; end\n"
            "\n"
            "\n"
            "    ##\n"
            "    # Message Fields\n"
            "    #\n"
            "    ::A::B::Msg.optional(::Protobuf::Field::StringField, :name, 1)\n"
            "\n"
            "\n"
            "  end\n"
            "end\n"
        )

    def test_file_name(self):
        context = MemoryContext()
        schema = SchemaFile(name="protos/User.proto")

        assert generate_file(schema, context) == "protos/user.pb.rb"
        assert context.file_names == ["protos/user.pb.rb"]

    def test_no_package_has_no_modules(self):
        schema = SchemaFile(
            name="m.proto",
            messages=(_make_message("Msg", [_make_field("Msg", "name", 1)]),),
        )

        result = _generate(schema)

        assert "module" not in result
        assert "\nend" not in result
        assert "class Msg < ::Protobuf::Message; end\n" in result
        assert "::Msg.optional(::Protobuf::Field::StringField, :name, 1)\n" in result


class TestRequires:
    def test_empty_file_has_no_requires(self):
        result = _generate(SchemaFile(name="empty.proto"))

        assert "require" not in result
        assert result.startswith("##\n# This file is auto-generated. DO NOT EDIT!\n#\n")

    def test_service_require(self):
        schema = SchemaFile(
            name="s.proto",
            services=(Service("Echo", "Echo", (Method("DoThing", "Req", "Resp"),)),),
        )

        result = _generate(schema)

        assert "require 'protobuf/rpc/service'" in result
        assert "require 'protobuf/message'" not in result

    def test_import_requires(self):
        schema = SchemaFile(
            name="s.proto",
            dependencies=("common/Types.proto", "other.proto"),
        )

        result = _generate(schema)

        assert "##\n# Imports\n#\nrequire 'common/types.pb'\nrequire 'other.pb'\n" in result


class TestEnums:
    def test_declaration_and_values(self):
        schema = SchemaFile(
            name="c.proto",
            enums=(_make_enum("Color", [("RED", 0), ("BLUE", 5)]),),
        )

        result = _generate(schema)
        lines = result.splitlines()

        assert "class Color < ::Protobuf::Enum; end" in lines
        assert "##\n# Enum Classes\n#\n" in result
        assert "##\n# Enum Values\n#\n" in result
        define_lines = [line for line in lines if ".define" in line]
        assert define_lines == ["::Color.define :RED, 0", "::Color.define :BLUE, 5"]
        # Declarations come before values
        assert lines.index("class Color < ::Protobuf::Enum; end") < lines.index("::Color.define :RED, 0")

    def test_values_need_not_be_unique_or_ordered(self):
        schema = SchemaFile(
            name="c.proto",
            package="pkg",
            enums=(_make_enum("pkg.Status", [("B", 9), ("A", 1), ("ALIAS", 1), ("NEG", -1)]),),
        )

        result = _generate(schema)

        define_lines = [line.strip() for line in result.splitlines() if ".define" in line]
        assert define_lines == [
            "::Pkg::Status.define :B, 9",
            "::Pkg::Status.define :A, 1",
            "::Pkg::Status.define :ALIAS, 1",
            "::Pkg::Status.define :NEG, -1",
        ]

    def test_enums_declared_before_messages(self):
        schema = SchemaFile(
            name="c.proto",
            enums=(_make_enum("Color", [("RED", 0)]),),
            messages=(_make_message("Paint", [
                _make_field("Paint", "color", 1, FieldType.ENUM, type_name="Color"),
            ]),),
        )

        lines = _generate(schema).splitlines()

        order = [
            lines.index("class Color < ::Protobuf::Enum; end"),
            lines.index("class Paint < ::Protobuf::Message; end"),
            lines.index("::Color.define :RED, 0"),
            lines.index("::Paint.optional(::Color, :color, 1)"),
        ]
        assert order == sorted(order)


class TestFields:
    def test_field_lines_in_declaration_order(self):
        owner = "shop.Order"
        fields = [
            _make_field(owner, "id", 3, FieldType.INT64, Label.REQUIRED),
            _make_field(owner, "tags", 1, FieldType.STRING, Label.REPEATED),
            _make_field(owner, "item", 2, FieldType.MESSAGE, type_name="shop.Item"),
        ]
        schema = SchemaFile(name="shop.proto", package="shop",
                            messages=(_make_message(owner, fields),))

        result = _generate(schema)

        field_lines = [line.strip() for line in result.splitlines() if line.strip().startswith("::Shop::Order.")]
        assert field_lines == [
            "::Shop::Order.required(::Protobuf::Field::Int64Field, :id, 3)",
            "::Shop::Order.repeated(::Protobuf::Field::StringField, :tags, 1)",
            "::Shop::Order.optional(::Shop::Item, :item, 2)",
        ]

    def test_field_name_is_lowercased(self):
        owner = "Msg"
        schema = SchemaFile(name="m.proto", messages=(_make_message(owner, [
            _make_field(owner, "Result", 1, FieldType.GROUP, type_name="Msg.Result"),
        ]),))

        assert "::Msg.optional(::Msg::Result, :result, 1)" in _generate(schema)

    def test_trailing_options_in_fixed_order(self):
        color_red = EnumValue("RED", 0, "pkg.Color.RED")
        owner = "pkg.Msg"
        fields = [
            _make_field(owner, "count", 1, FieldType.INT32, default_value=7),
            _make_field(owner, "ratio", 2, FieldType.DOUBLE, default_value=0.5),
            _make_field(owner, "on", 3, FieldType.BOOL, default_value=False),
            _make_field(owner, "label", 4, FieldType.STRING, default_value="none"),
            _make_field(owner, "color", 5, FieldType.ENUM, type_name="pkg.Color",
                        default_value=color_red, deprecated=True),
            _make_field(owner, "ids", 6, FieldType.INT32, Label.REPEATED,
                        packed=True, deprecated=False),
        ]
        schema = SchemaFile(name="m.proto", package="pkg", messages=(_make_message(owner, fields),))

        result = _generate(schema)

        assert "::Pkg::Msg.optional(::Protobuf::Field::Int32Field, :count, 1, :default => 7)" in result
        assert "::Pkg::Msg.optional(::Protobuf::Field::DoubleField, :ratio, 2, :default => 0.5)" in result
        assert "::Pkg::Msg.optional(::Protobuf::Field::BoolField, :on, 3, :default => false)" in result
        assert '::Pkg::Msg.optional(::Protobuf::Field::StringField, :label, 4, :default => "none")' in result
        assert ("::Pkg::Msg.optional(::Pkg::Color, :color, 5, "
                ":default => ::Pkg::Color::RED, :deprecated => true)") in result
        assert ("::Pkg::Msg.repeated(::Protobuf::Field::Int32Field, :ids, 6, "
                ":packed => true, :deprecated => false)") in result

    def test_multiline_string_default_is_kept_verbatim(self):
        owner = "pkg.Msg"
        field = _make_field(owner, "text", 1, FieldType.STRING, default_value="a\nb")
        schema = SchemaFile(name="m.proto", package="pkg", messages=(_make_message(owner, [field]),))

        result = _generate(schema)

        assert ('  ::Pkg::Msg.optional(::Protobuf::Field::StringField, :text, 1, '
                ':default => "a\nb")\n') in result

    def test_packed_requires_packable_field(self):
        owner = "Msg"
        fields = [
            _make_field(owner, "names", 1, FieldType.STRING, Label.REPEATED, packed=True),
            _make_field(owner, "single", 2, FieldType.INT32, Label.OPTIONAL, packed=True),
            _make_field(owner, "implicit", 3, FieldType.INT32, Label.REPEATED),
            _make_field(owner, "unpacked", 4, FieldType.SINT64, Label.REPEATED, packed=False),
        ]
        schema = SchemaFile(name="m.proto", messages=(_make_message(owner, fields),))

        result = _generate(schema)

        assert "::Msg.repeated(::Protobuf::Field::StringField, :names, 1)\n" in result
        assert "::Msg.optional(::Protobuf::Field::Int32Field, :single, 2)\n" in result
        assert "::Msg.repeated(::Protobuf::Field::Int32Field, :implicit, 3)\n" in result
        assert "::Msg.repeated(::Protobuf::Field::Sint64Field, :unpacked, 4, :packed => false)\n" in result

    def test_extensions(self):
        base = _make_message("pkg.Base", [_make_field("pkg.Base", "id", 1, FieldType.INT32)],
                             ranges=[ExtensionRange(100, 200), ExtensionRange(500, 536870912)])
        holder = _make_message("pkg.Holder", [
            _make_field("pkg.Holder", "note", 1),
            _make_field("pkg.Base", "extra", 100, is_extension=True),
        ])
        schema = SchemaFile(name="e.proto", package="pkg", messages=(base, holder))

        result = _generate(schema)
        lines = [line.strip() for line in result.splitlines()]

        ranges_at = lines.index("::Pkg::Base.extensions 100...200")
        assert lines[ranges_at + 1] == "::Pkg::Base.extensions 500...536870912"
        assert lines[ranges_at + 2] == "::Pkg::Base.optional(::Protobuf::Field::Int32Field, :id, 1)"
        note_at = lines.index("::Pkg::Holder.optional(::Protobuf::Field::StringField, :note, 1)")
        assert lines[note_at + 1] == (
            "::Pkg::Base.optional(::Protobuf::Field::StringField, :extra, 100, :extension => true)"
        )

    def test_ranges_without_fields_add_no_blank_line(self):
        holder = _make_message("Holder", ranges=[ExtensionRange(10, 20)])
        schema = SchemaFile(name="h.proto", messages=(holder,))

        result = _generate(schema)

        assert result.endswith("::Holder.extensions 10...20\n\n")
        assert "10...20\n\n\n" not in result


class TestNestedTypes:
    def _schema(self) -> SchemaFile:
        inner = _make_message("pkg.Outer.Inner", [_make_field("pkg.Outer.Inner", "x", 1, FieldType.INT32)])
        kind = _make_enum("pkg.Outer.Kind", [("A", 1)])
        outer = _make_message("pkg.Outer", [
            _make_field("pkg.Outer", "inner", 1, FieldType.MESSAGE, type_name="pkg.Outer.Inner"),
            _make_field("pkg.Outer", "kind", 2, FieldType.ENUM, type_name="pkg.Outer.Kind"),
        ], nested=[inner], enums=[kind])
        other = _make_message("pkg.Other")
        return SchemaFile(name="n.proto", package="pkg", messages=(outer, other))

    def test_declarations_depth_first(self):
        lines = [line.strip() for line in _generate(self._schema()).splitlines()]

        start = lines.index("class Outer < ::Protobuf::Message; end")
        assert lines[start:start + 4] == [
            "class Outer < ::Protobuf::Message; end",
            "class Outer::Kind < ::Protobuf::Enum; end",
            "class Outer::Inner < ::Protobuf::Message; end",
            "class Other < ::Protobuf::Message; end",
        ]

    def test_population_follows_same_order(self):
        lines = [line.strip() for line in _generate(self._schema()).splitlines()]

        order = [
            lines.index("::Pkg::Outer.optional(::Pkg::Outer::Inner, :inner, 1)"),
            lines.index("::Pkg::Outer.optional(::Pkg::Outer::Kind, :kind, 2)"),
            lines.index("::Pkg::Outer::Kind.define :A, 1"),
            lines.index("::Pkg::Outer::Inner.optional(::Protobuf::Field::Int32Field, :x, 1)"),
        ]
        assert order == sorted(order)
        assert all(i > lines.index("class Other < ::Protobuf::Message; end") for i in order)

    def test_iter_types_order(self):
        names = [node.full_name for node in iter_types(self._schema().messages)]

        assert names == ["pkg.Outer", "pkg.Outer.Kind", "pkg.Outer.Inner", "pkg.Other"]


class TestServices:
    def test_service_block(self):
        schema = SchemaFile(
            name="echo.proto",
            services=(Service("Echo", "Echo", (Method("DoThing", "Req", "Resp"),)),),
        )

        result = _generate(schema)

        assert "##\n# Services\n#\nclass Echo < ::Protobuf::Service\n  rpc :do_thing, ::Req, ::Resp\nend\n" in result

    def test_methods_in_order_with_packages(self):
        methods = (
            Method("Search", "search.Query", "search.Results"),
            Method("GetHTTPStatus", "google.protobuf.Empty", "search.Status"),
        )
        schema = SchemaFile(name="search.proto", package="search",
                            services=(Service("SearchService", "search.SearchService", methods),))

        lines = _generate(schema).splitlines()

        start = lines.index("  class SearchService < ::Protobuf::Service")
        assert lines[start:start + 4] == [
            "  class SearchService < ::Protobuf::Service",
            "    rpc :search, ::Search::Query, ::Search::Results",
            "    rpc :get_httpstatus, ::Google::Protobuf::Empty, ::Search::Status",
            "  end",
        ]
        assert lines[-1] == "end"


class TestNamespaces:
    @pytest.mark.parametrize("package,depth", [("", 0), ("a", 1), ("a.b", 2), ("com.example.my_app", 3)])
    def test_modules_balance(self, package, depth):
        schema = SchemaFile(name="x.proto", package=package)

        lines = _generate(schema).splitlines()

        module_lines = [line for line in lines if line.strip().startswith("module ")]
        end_lines = [line for line in lines if line.strip() == "end"]
        assert len(module_lines) == depth
        assert len(end_lines) == depth

    def test_module_names_are_constantized(self):
        schema = SchemaFile(name="x.proto", package="com.my_app")

        lines = _generate(schema).splitlines()

        assert "module Com" in lines
        assert "  module MyApp" in lines

    def test_indent_option(self):
        schema = SchemaFile(name="x.proto", package="a",
                            messages=(_make_message("a.M"),))

        result = _generate(schema, options=GeneratorOptions(indent=4))

        assert "\n    class M < ::Protobuf::Message; end\n" in result


class _BrokenStream(io.StringIO):
    def write(self, s):
        raise OSError("No space left on device")


class _BrokenContext(GeneratorContext):
    def __init__(self):
        self.discarded = []

    def open(self, file_name):
        return _BrokenStream()

    def discard(self, file_name):
        self.discarded.append(file_name)


class TestWriteFailure:
    def test_raises_generation_error_naming_file(self):
        context = _BrokenContext()

        with pytest.raises(GenerationError) as excinfo:
            generate_file(SchemaFile(name="broken.proto"), context)

        assert excinfo.value.file_name == "broken.pb.rb"
        assert "broken.pb.rb" in str(excinfo.value)
        assert context.discarded == ["broken.pb.rb"]

    def test_memory_context_drops_failed_file(self):
        class FailingMemoryContext(MemoryContext):
            def open(self, file_name):
                super().open(file_name)
                return _BrokenStream()

        context = FailingMemoryContext()

        with pytest.raises(GenerationError):
            generate_file(SchemaFile(name="broken.proto"), context)

        assert context.file_names == []
