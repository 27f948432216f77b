"""
Tests for the build use case — workspace lifecycle, logging and exit codes.
"""

from pathlib import Path

import pytest

from rtbuild.core.services.install.predicates import default_predicate_registry
from rtbuild.core.use_cases.build import failure_banner, run_build

URL = "https://example.test/dist/pkg-1.0.tar.gz"


@pytest.fixture
def defs_dir(tmp_path: Path) -> Path:
    path = tmp_path / "defs"
    path.mkdir()
    (path / "pkg-1.0").write_text(f'install_package "pkg-1.0" "{URL}" standard\n')
    return path


@pytest.fixture
def config_for(build_config, defs_dir):
    def _make(env: dict[str, str] | None = None, **overrides):
        return build_config(env={"RTBUILD_DEFINITIONS": str(defs_dir), **(env or {})}, **overrides)
    return _make


@pytest.fixture
def build(tmp_path: Path, http_registry, notices):
    """Run a build into tmp_path/prefix with the fake transport."""
    def _build(definition: str, config, **kwargs):
        return run_build(
            definition, tmp_path / "prefix", config,
            notify=notices.append, http_registry=http_registry, **kwargs,
        )
    return _build


class TestSuccess:
    def test_installs_and_cleans_up(self, tmp_path, build, config_for, fake_http, make_tarball, notices):
        fake_http.files[URL] = make_tarball("pkg-1.0")
        outcome = build("pkg-1.0", config_for())

        assert outcome.ok
        assert outcome.status == "ok"
        assert (tmp_path / "prefix" / "bin" / "hello").is_file()
        assert [p.package for p in outcome.packages] == ["pkg-1.0"]
        assert not Path(outcome.build_path).exists()
        assert not outcome.build_path_kept
        assert f"Installed pkg-1.0 to {tmp_path / 'prefix'}" in notices

    def test_run_log(self, build, config_for, fake_http, make_tarball):
        fake_http.files[URL] = make_tarball("pkg-1.0")
        outcome = build("pkg-1.0", config_for())

        log_path = Path(outcome.log_path)
        assert log_path.parent == Path(config_for().tmpdir)
        assert log_path.name.startswith("rtbuild.") and log_path.name.endswith(".log")
        text = log_path.read_text()
        assert "+ ./configure" in text
        assert "configure --prefix=" in text
        assert "Building pkg-1.0 into" in text

    def test_workspace_and_log_share_seed(self, build, config_for, fake_http, make_tarball):
        fake_http.files[URL] = make_tarball("pkg-1.0")
        outcome = build("pkg-1.0", config_for())
        assert Path(outcome.log_path).name == Path(outcome.build_path).name + ".log"

    def test_keep_retains_workspace(self, build, config_for, fake_http, make_tarball):
        fake_http.files[URL] = make_tarball("pkg-1.0")
        outcome = build("pkg-1.0", config_for(keep=True))

        assert outcome.ok
        assert outcome.build_path_kept
        workspace = Path(outcome.build_path)
        assert (workspace / "pkg-1.0" / "configure").is_file()
        assert (workspace / "pkg-1.0.tar.gz").is_file()

    def test_fixed_build_path(self, tmp_path, build, config_for, fake_http, make_tarball):
        fake_http.files[URL] = make_tarball("pkg-1.0")
        fixed = tmp_path / "fixed-build"
        outcome = build("pkg-1.0", config_for(build_path=fixed, keep=True))
        assert outcome.build_path == str(fixed)
        assert (fixed / "pkg-1.0").is_dir()

    def test_config_is_not_mutated(self, tmp_path, build, config_for, fake_http, make_tarball):
        fake_http.files[URL] = make_tarball("pkg-1.0")
        definition = tmp_path / "with-options-1.0"
        definition.write_text(
            "package_option pkg configure --enable-x\n"
            f'install_package "pkg-1.0" "{URL}"\n'
        )
        config = config_for()
        assert build(str(definition), config).ok
        assert config.families == {}

    def test_verbose_echoes_log(self, build, config_for, fake_http, make_tarball):
        fake_http.files[URL] = make_tarball("pkg-1.0")
        echoed: list[str] = []
        outcome = build("pkg-1.0", config_for(verbose=True), echo=echoed.append)
        assert outcome.ok
        assert any(line.startswith("+ ./configure") for line in echoed)

    def test_skipped_package(self, tmp_path, build, config_for, fake_http):
        definition = tmp_path / "skip-1.0"
        definition.write_text(f'install_package "pkg-1.0" "{URL}" --if false\n')
        outcome = build(str(definition), config_for())
        assert outcome.ok
        assert outcome.packages[0].status == "skipped"
        assert fake_http.downloads == []


class TestFailure:
    def test_not_found(self, build, config_for):
        outcome = build("nosuch-9.9", config_for())
        assert outcome.exit_code == 2
        assert outcome.status == "not_found"
        assert outcome.message == "definition not found: nosuch-9.9"
        assert outcome.log_path is None
        assert outcome.build_path is None

    def test_build_step_failure_keeps_workspace(self, build, config_for, fake_http, make_tarball):
        fake_http.files[URL] = make_tarball(
            "pkg-1.0", files={"configure": "#!/bin/sh\necho 'checking for cc... no'\nexit 3\n"},
        )
        outcome = build("pkg-1.0", config_for())

        assert outcome.exit_code == 1
        assert outcome.status == "failed"
        assert "pkg-1.0: configure failed (exit 3)" in outcome.message
        assert outcome.build_path_kept
        assert Path(outcome.build_path, "pkg-1.0").is_dir()
        assert 0 < len(outcome.log_tail) <= 10
        assert "configure failed (exit 3)" in outcome.log_tail[-1]
        assert any("checking for cc... no" in line for line in outcome.log_tail)

    def test_fetch_failure_removes_empty_workspace(self, build, config_for, fake_http):
        outcome = build("pkg-1.0", config_for())
        assert outcome.exit_code == 1
        assert "download failed" in outcome.message
        assert not outcome.build_path_kept
        assert not Path(outcome.build_path).exists()

    def test_checksum_mismatch(self, tmp_path, build, config_for, fake_http, make_tarball):
        fake_http.files[URL] = make_tarball("pkg-1.0")
        definition = tmp_path / "pinned-1.0"
        definition.write_text(f'install_package "pkg-1.0" "{URL}#{"0" * 64}"\n')
        outcome = build(str(definition), config_for())
        assert outcome.exit_code == 1
        assert "checksum mismatch" in outcome.message
        assert not (tmp_path / "prefix" / "bin").exists()

    def test_malformed_definition(self, tmp_path, build, config_for):
        definition = tmp_path / "broken-1.0"
        definition.write_text("make_coffee now\n")
        outcome = build(str(definition), config_for())
        assert outcome.exit_code == 1
        assert "unknown directive 'make_coffee'" in outcome.message

    def test_unbalanced_quotes_in_options(self, build, config_for, fake_http, make_tarball):
        fake_http.files[URL] = make_tarball("pkg-1.0")
        outcome = build("pkg-1.0", config_for(env={"CONFIGURE_OPTS": "--with-x='unterminated"}))

        assert outcome.exit_code == 1
        assert outcome.status == "failed"
        assert "Cannot split options" in outcome.message
        assert outcome.build_path_kept
        assert Path(outcome.build_path, "pkg-1.0").is_dir()
        assert outcome.log_tail

    def test_undecodable_definition(self, tmp_path, build, config_for):
        definition = tmp_path / "binary-1.0"
        definition.write_bytes(b"\xff\xfe\x00install_package\n")
        outcome = build(str(definition), config_for())
        assert outcome.exit_code == 1
        assert outcome.status == "failed"
        assert "Cannot read" in outcome.message
        assert outcome.log_path is None

    def test_unexpected_error_is_contained(self, build, config_for, fake_http, make_tarball):
        fake_http.files[URL] = make_tarball("pkg-1.0")
        predicates = default_predicate_registry()

        def broken(ctx):
            raise RuntimeError("predicate blew up")

        predicates.register("broken", broken)
        definition_dir = Path(config_for().definition_dirs[0])
        (definition_dir / "odd-1.0").write_text(f'install_package "pkg-1.0" "{URL}" --if broken\n')

        outcome = build("odd-1.0", config_for(), predicates=predicates)
        assert outcome.exit_code == 1
        assert outcome.status == "failed"
        assert outcome.message == "RuntimeError: predicate blew up"
        assert not outcome.build_path_kept
        assert not Path(outcome.build_path).exists()
        assert outcome.log_tail[-1].endswith("Build failed: RuntimeError: predicate blew up")

    def test_interrupt_removes_workspace(self, build, config_for, fake_http, make_tarball):
        fake_http.files[URL] = make_tarball("pkg-1.0")
        predicates = default_predicate_registry()

        def interrupted(ctx):
            raise KeyboardInterrupt

        predicates.register("interrupted", interrupted)
        definition_dir = Path(config_for().definition_dirs[0])
        (definition_dir / "int-1.0").write_text(f'install_package "pkg-1.0" "{URL}" --if interrupted\n')

        outcome = build("int-1.0", config_for(), predicates=predicates)
        assert outcome.exit_code == 1
        assert outcome.status == "interrupted"
        assert not Path(outcome.build_path).exists()

    def test_failure_banner(self):
        assert failure_banner().startswith("BUILD FAILED (")
        assert "using rtbuild" in failure_banner()
