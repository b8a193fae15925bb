"""Tests for config file discovery and parsing."""

import pathlib as _pathlib

import pytest as _pytest

import figi.errors as errors
import figi.files as files


@_pytest.fixture
def registry() -> files.ParserRegistry:
    return files.ParserRegistry.with_defaults()


class TestParserRegistry:
    def test_default_extensions_in_search_order(self, registry: files.ParserRegistry) -> None:
        assert registry.extensions == (".json", ".yml", ".yaml", ".toml")

    def test_lookup_is_case_insensitive_and_dot_optional(self, registry: files.ParserRegistry) -> None:
        assert registry.get("YAML") is registry.get(".yml")
        assert registry.get(".JSON") is not None

    def test_for_path_unknown_extension(self, registry: files.ParserRegistry) -> None:
        with _pytest.raises(errors.ConfigFormatError) as exc_info:
            registry.for_path(_pathlib.Path("app.ini"))
        assert ".ini" in str(exc_info.value)
        assert exc_info.value.known == registry.extensions

    def test_register_custom_parser(self, registry: files.ParserRegistry) -> None:
        registry.register("ini", files.Parser("INI", lambda text: {"raw": text}))
        assert registry.extensions[-1] == ".ini"


class TestDiscover:
    def test_search_order_within_directory(self, tmp_path: _pathlib.Path) -> None:
        for ext in (".toml", ".yaml", ".json", ".yml"):
            (tmp_path / f"app{ext}").write_text("")

        found = files.discover([tmp_path], "app")

        assert [p.suffix for p in found] == [".json", ".yml", ".yaml", ".toml"]

    def test_directories_searched_in_order(self, tmp_path: _pathlib.Path) -> None:
        first, second = tmp_path / "first", tmp_path / "second"
        first.mkdir()
        second.mkdir()
        (second / "app.json").write_text("{}")
        (first / "app.yaml").write_text("")

        found = files.discover([first, second], "app")

        assert found == [(first / "app.yaml").resolve(), (second / "app.json").resolve()]

    def test_missing_directory_and_other_names_ignored(self, tmp_path: _pathlib.Path) -> None:
        (tmp_path / "other.json").write_text("{}")
        assert files.discover([tmp_path, tmp_path / "nope"], "app") == []

    def test_duplicate_directories_collapse(self, tmp_path: _pathlib.Path) -> None:
        (tmp_path / "app.json").write_text("{}")
        assert len(files.discover([tmp_path, tmp_path / "."], "app")) == 1

    def test_directories_with_config_name_skipped(self, tmp_path: _pathlib.Path) -> None:
        (tmp_path / "app.json").mkdir()
        assert files.discover([tmp_path], "app") == []


class TestLoadFile:
    def test_json(self, tmp_path: _pathlib.Path, registry: files.ParserRegistry) -> None:
        path = tmp_path / "app.json"
        path.write_text('{"database": {"host": "localhost", "port": 5432}}')
        assert files.load_file(path, registry) == {"database": {"host": "localhost", "port": 5432}}

    def test_yaml(self, tmp_path: _pathlib.Path, registry: files.ParserRegistry) -> None:
        path = tmp_path / "app.yml"
        path.write_text("service:\n  enabled: true\n  tags: [a, b]\n")
        assert files.load_file(path, registry) == {"service": {"enabled": True, "tags": ["a", "b"]}}

    def test_toml(self, tmp_path: _pathlib.Path, registry: files.ParserRegistry) -> None:
        path = tmp_path / "app.toml"
        path.write_text('[database]\nhost = "localhost"\nport = 5432\n')
        assert files.load_file(path, registry) == {"database": {"host": "localhost", "port": 5432}}

    def test_empty_yaml_is_empty_tree(self, tmp_path: _pathlib.Path, registry: files.ParserRegistry) -> None:
        path = tmp_path / "app.yaml"
        path.write_text("")
        assert files.load_file(path, registry) == {}

    def test_explicit_parser_overrides_extension(
        self,
        tmp_path: _pathlib.Path,
        registry: files.ParserRegistry,
    ) -> None:
        path = tmp_path / "app.conf"
        path.write_text("a: 1\n")
        assert files.load_file(path, registry, parser=registry.get(".yaml")) == {"a": 1}

    def test_missing_file(self, tmp_path: _pathlib.Path, registry: files.ParserRegistry) -> None:
        with _pytest.raises(errors.ConfigFileNotFoundError) as exc_info:
            files.load_file(tmp_path / "absent.json", registry)
        assert isinstance(exc_info.value, FileNotFoundError)
        assert "absent.json" in str(exc_info.value)

    @_pytest.mark.parametrize(
        ("name", "content", "fmt"),
        [
            ("bad.json", "{not json", "JSON"),
            ("bad.yaml", "a: [1, 2\n", "YAML"),
            ("bad.toml", "a = \n", "TOML"),
        ],
    )
    def test_parse_errors(
        self,
        tmp_path: _pathlib.Path,
        registry: files.ParserRegistry,
        name: str,
        content: str,
        fmt: str,
    ) -> None:
        path = tmp_path / name
        path.write_text(content)
        with _pytest.raises(errors.ConfigParseError) as exc_info:
            files.load_file(path, registry)
        assert exc_info.value.format == fmt
        assert exc_info.value.path == path

    def test_non_mapping_top_level(self, tmp_path: _pathlib.Path, registry: files.ParserRegistry) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with _pytest.raises(errors.ConfigParseError, match="top level must be a mapping"):
            files.load_file(path, registry)

    def test_invalid_utf8(self, tmp_path: _pathlib.Path, registry: files.ParserRegistry) -> None:
        path = tmp_path / "app.json"
        path.write_bytes(b'{"a": "\xff"}')
        with _pytest.raises(errors.ConfigParseError, match="UTF-8"):
            files.load_file(path, registry)
