"""
Tests for the definition loader — lookup, listing, parsing and execution.
"""

import textwrap
from pathlib import Path
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from rtbuild.core.config.settings import BuildConfig
from rtbuild.core.errors import DefinitionError, DefinitionNotFoundError
from rtbuild.core.models.definition import HookDirective, InstallDirective, PackageOptionDirective
from rtbuild.core.services.definitions.loader import (
    BUILTIN_DEFINITIONS_DIR,
    execute_definition,
    list_definitions,
    load_definition,
    parse_definition,
    resolve_definition,
)
from rtbuild.core.services.install.hooks import HookRegistry


def _parse(text: str):
    return parse_definition(textwrap.dedent(text), name="test-1.0")


class TestParse:
    def test_install_package(self):
        definition = _parse("""\
            # leading comment
            install_package "pkg-1.0" "https://x.test/pkg-1.0.tar.gz#abc123" standard autoconf

        """)
        (directive,) = definition.directives
        assert isinstance(directive, InstallDirective)
        assert directive.package == "pkg-1.0"
        assert directive.fetch_kind == "tarball"
        assert directive.fetch_args == ("https://x.test/pkg-1.0.tar.gz#abc123",)
        assert directive.steps == ("standard", "autoconf")
        assert directive.line == 2

    def test_unquoted_checksum_fragment(self):
        definition = _parse("install_package pkg-1.0 https://x.test/pkg-1.0.tar.gz#abc123\n")
        assert definition.packages[0].fetch_args == ("https://x.test/pkg-1.0.tar.gz#abc123",)

    def test_trailing_comment(self):
        definition = _parse("install_package pkg-1.0 https://x.test/p.tgz standard # don't care\n")
        assert definition.packages[0].steps == ("standard",)

    def test_default_steps_are_empty(self):
        assert _parse("install_package pkg-1.0 https://x.test/p.tgz\n").packages[0].steps == ()

    def test_predicates(self):
        directive = _parse(
            "install_package yaml-0.2.5 https://x.test/y.tgz standard --if needs_yaml --if is_linux\n"
        ).packages[0]
        assert directive.steps == ("standard",)
        assert directive.predicates == ("needs_yaml", "is_linux")

    def test_predicate_without_name(self):
        with pytest.raises(DefinitionError, match="--if needs a predicate"):
            _parse("install_package pkg-1.0 https://x.test/p.tgz --if\n")

    def test_install_package_using(self):
        directive = _parse("install_package_using tarball 1 pkg-1.0 https://x.test/p.tgz openssl\n").packages[0]
        assert directive.fetch_kind == "tarball"
        assert directive.fetch_arity == 1
        assert directive.fetch_args == ("https://x.test/p.tgz",)
        assert directive.steps == ("openssl",)

    def test_install_package_using_bad_arity(self):
        with pytest.raises(DefinitionError, match="must be an integer"):
            _parse("install_package_using tarball one pkg-1.0 https://x.test/p.tgz\n")
        with pytest.raises(DefinitionError, match="declares 2 fetch argument"):
            _parse("install_package_using tarball 2 pkg-1.0 https://x.test/p.tgz\n")

    def test_missing_url(self):
        with pytest.raises(DefinitionError, match="needs NAME and URL"):
            _parse("install_package pkg-1.0\n")

    def test_package_option(self):
        (directive,) = _parse('package_option ruby configure --with-dir="$PREFIX_PATH" --x\n').directives
        assert isinstance(directive, PackageOptionDirective)
        assert directive.family == "ruby"
        assert directive.stage == "configure"
        assert directive.args == ("--with-dir=$PREFIX_PATH", "--x")

    def test_hooks(self):
        definition = _parse("""\
            before_install "echo before"
            after_install rm -rf "$PREFIX_PATH/share/man"
        """)
        before, after = definition.directives
        assert isinstance(before, HookDirective)
        assert before.point == "before_install"
        assert before.command == "echo before"
        assert after.command == "rm -rf $PREFIX_PATH/share/man"

    def test_line_continuation(self):
        definition = _parse("""\
            install_package pkg-1.0 \\
                https://x.test/p.tgz \\
                standard
            install_package other-1.0 https://x.test/o.tgz
        """)
        first, second = definition.packages
        assert first.steps == ("standard",)
        assert first.line == 1
        assert second.line == 4

    def test_unknown_directive(self):
        with pytest.raises(DefinitionError, match="line 2: unknown directive 'frobnicate'"):
            _parse("""\
                install_package pkg-1.0 https://x.test/p.tgz
                frobnicate now
            """)

    def test_unbalanced_quote(self):
        with pytest.raises(DefinitionError, match="line 1"):
            _parse('install_package "pkg-1.0 https://x.test/p.tgz\n')

    def test_definition_is_immutable(self):
        definition = _parse("install_package pkg-1.0 https://x.test/p.tgz\n")
        with pytest.raises(ValidationError):
            definition.name = "other"


class TestResolve:
    def test_literal_path(self, tmp_path: Path):
        path = tmp_path / "custom-1.0"
        path.write_text("")
        assert resolve_definition(str(path), dirs=[]) == path

    def test_search_dirs_in_order(self, tmp_path: Path):
        first, second = tmp_path / "first", tmp_path / "second"
        for d in (first, second):
            d.mkdir()
            (d / "foo-1.0").write_text("")
        assert resolve_definition("foo-1.0", dirs=[first, second]) == first / "foo-1.0"

    def test_not_found(self, tmp_path: Path):
        with pytest.raises(DefinitionNotFoundError) as exc:
            resolve_definition("nosuch-9.9", dirs=[tmp_path])
        assert exc.value.exit_code == 2
        assert str(exc.value) == "definition not found: nosuch-9.9"

    def test_builtin_lookup(self):
        assert resolve_definition("ruby-3.3.0") == BUILTIN_DEFINITIONS_DIR / "ruby-3.3.0"

    def test_load_uses_basename(self, tmp_path: Path):
        path = tmp_path / "custom-1.0"
        path.write_text("install_package pkg-1.0 https://x.test/p.tgz\n")
        definition = load_definition(str(path), dirs=[])
        assert definition.name == "custom-1.0"
        assert definition.path == path


class TestListDefinitions:
    def test_natural_sort(self, tmp_path: Path):
        for name in ("python-3.10.0", "python-3.9.1", "python-3.9.10", ".hidden"):
            (tmp_path / name).write_text("")
        (tmp_path / "subdir").mkdir()
        assert list_definitions([tmp_path]) == ["python-3.9.1", "python-3.9.10", "python-3.10.0"]

    def test_merges_and_dedupes(self, tmp_path: Path):
        a, b = tmp_path / "a", tmp_path / "b"
        for d in (a, b):
            d.mkdir()
            (d / "foo-1.0").write_text("")
        (b / "bar-2.0").write_text("")
        assert list_definitions([a, b, tmp_path / "missing"]) == ["bar-2.0", "foo-1.0"]

    def test_builtins(self):
        names = list_definitions()
        assert "python-3.12.4" in names
        assert "ruby-3.3.0" in names

    @pytest.mark.parametrize("name", ["python-3.12.4", "ruby-3.3.0"])
    def test_builtins_parse(self, name):
        definition = load_definition(name)
        assert definition.packages
        assert definition.packages[-1].steps == ("standard",)


class RecordingPipeline:
    """Just enough of InstallPipeline for execute_definition."""

    def __init__(self, tmp_path: Path):
        self.ctx = SimpleNamespace(
            prefix=tmp_path / "prefix", build_path=tmp_path / "build", config=BuildConfig(),
        )
        self.hooks = HookRegistry()
        self.installs: list[tuple] = []

    def install_package_using(self, kind, arity, name, *args, predicates=()):
        self.installs.append((kind, arity, name, args, tuple(predicates)))


class TestExecute:
    def test_directives_run_in_order(self, tmp_path: Path):
        definition = _parse("""\
            package_option yaml configure --with-root="$PREFIX_PATH"
            install_package yaml-0.2.5 "https://x.test/y.tgz#abc" standard --if needs_yaml
            after_install "true"
            install_package_using tarball 1 ruby-3.3.0 "$BUILD_PATH/ruby.tgz"
        """)
        pipeline = RecordingPipeline(tmp_path)
        execute_definition(definition, pipeline)

        assert pipeline.installs == [
            ("tarball", 1, "yaml-0.2.5", ("https://x.test/y.tgz#abc", "standard"), ("needs_yaml",)),
            ("tarball", 1, "ruby-3.3.0", (f"{tmp_path / 'build'}/ruby.tgz",), ()),
        ]
        assert pipeline.ctx.config.family("yaml-0.2.5").configure_opts_array == [
            f"--with-root={tmp_path / 'prefix'}",
        ]
        assert len(pipeline.hooks.hooks("after_install")) == 1

    def test_bad_package_option_stage(self, tmp_path: Path):
        definition = _parse("package_option ruby link -lfoo\n")
        with pytest.raises(DefinitionError, match="line 1"):
            execute_definition(definition, RecordingPipeline(tmp_path))
