from protoc_ruby.context import DirectoryContext, MemoryContext


class TestMemoryContext:
    def test_content_captured_on_close(self):
        context = MemoryContext()

        with context.open("a.pb.rb") as stream:
            stream.write("hello\n")

        assert context.content("a.pb.rb") == "hello\n"
        assert context.items() == [("a.pb.rb", "hello\n")]

    def test_open_order_is_kept(self):
        context = MemoryContext()
        for name in ("b.pb.rb", "a.pb.rb"):
            with context.open(name) as stream:
                stream.write(name)

        assert context.file_names == ["b.pb.rb", "a.pb.rb"]

    def test_discard(self):
        context = MemoryContext()
        with context.open("a.pb.rb") as stream:
            stream.write("x")

        context.discard("a.pb.rb")

        assert context.file_names == []
        assert context.items() == []


class TestDirectoryContext:
    def test_writes_nested_paths(self, tmp_path):
        context = DirectoryContext(str(tmp_path))

        with context.open("shop/cart.pb.rb") as stream:
            stream.write("content")

        assert (tmp_path / "shop" / "cart.pb.rb").read_text(encoding="utf-8") == "content"
        assert context.written == [str(tmp_path / "shop" / "cart.pb.rb")]

    def test_discard_removes_file(self, tmp_path):
        context = DirectoryContext(str(tmp_path))
        with context.open("cart.pb.rb") as stream:
            stream.write("partial")

        context.discard("cart.pb.rb")

        assert not (tmp_path / "cart.pb.rb").exists()
        assert context.written == []
