"""
Shared test fixtures — fake transports, source tarballs and a fake make.

No test touches the network or a real compiler: packages are tiny
tarballs whose ``configure`` is a shell script, and ``make`` is a
script that copies ``hello`` into the prefix on ``make install``.
"""

import io
import shutil
import tarfile
from pathlib import Path

import pytest

from rtbuild.adapters.base import HttpClient
from rtbuild.adapters.registry import HttpClientRegistry
from rtbuild.adapters.shell.command import CommandRunner
from rtbuild.core.config.settings import load_config
from rtbuild.core.errors import FetchError
from rtbuild.core.observability.build_log import BuildLog
from rtbuild.core.services.install.context import RunContext

FAKE_CONFIGURE = """\
#!/bin/sh
echo "configure $*"
for arg in "$@"; do
  case "$arg" in
    --prefix=*) echo "${arg#--prefix=}" > .prefix ;;
  esac
done
echo "$*" > .configure-args
echo "${CFLAGS-}" > .cflags
"""

FAKE_MAKE = """\
#!/bin/sh
echo "make $*" >> .make-calls
if [ "$1" = "install" ]; then
  prefix=$(cat .prefix)
  mkdir -p "$prefix/bin"
  cp hello "$prefix/bin/hello"
fi
"""

HELLO = "#!/bin/sh\necho hello\n"


class FakeHttpClient(HttpClient):
    """In-memory transport: serves local files for known URLs."""

    def __init__(self, client_name: str = "fake", available: bool = True):
        self._name = client_name
        self._available = available
        self.files: dict[str, Path] = {}
        self.broken: set[str] = set()
        self.heads: list[str] = []
        self.downloads: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self._available

    def head(self, url: str) -> bool:
        self.heads.append(url)
        return url in self.files

    def download(self, url: str, dest: Path) -> None:
        self.downloads.append(url)
        if url not in self.files or url in self.broken:
            dest.unlink(missing_ok=True)
            raise FetchError(f"download failed: {url}")
        shutil.copyfile(self.files[url], dest)


@pytest.fixture
def make_tarball(tmp_path: Path):
    """Factory: build ``<dist>/<name>.tar.gz`` with a fake autotools tree."""
    dist = tmp_path / "dist"
    dist.mkdir()

    def _make(
        name: str,
        files: dict[str, str] | None = None,
        top: str | None = None,
        filename: str | None = None,
    ) -> Path:
        contents = {"configure": FAKE_CONFIGURE, "hello": HELLO} if files is None else files
        archive = dist / (filename or f"{name}.tar.gz")
        with tarfile.open(archive, "w:gz") as tar:
            for rel, text in contents.items():
                data = text.encode()
                info = tarfile.TarInfo(f"{top or name}/{rel}")
                info.size = len(data)
                info.mode = 0o755
                tar.addfile(info, io.BytesIO(data))
        return archive

    return _make


@pytest.fixture
def fake_make(tmp_path: Path) -> str:
    """Path to an executable that stands in for ``make``."""
    script = tmp_path / "fake-make"
    script.write_text(FAKE_MAKE)
    script.chmod(0o755)
    return str(script)


@pytest.fixture
def build_config(tmp_path: Path, fake_make: str):
    """Factory: a BuildConfig isolated from the host environment."""

    def _make(env: dict[str, str] | None = None, **overrides):
        environ = {"TMPDIR": str(tmp_path / "tmp"), "MAKE": fake_make}
        environ.update(env or {})
        return load_config(environ=environ, **overrides)

    return _make


@pytest.fixture
def fake_http() -> FakeHttpClient:
    return FakeHttpClient()


@pytest.fixture
def http_registry(fake_http: FakeHttpClient) -> HttpClientRegistry:
    registry = HttpClientRegistry()
    registry.register(fake_http)
    return registry


@pytest.fixture
def notices() -> list[str]:
    """User-facing progress lines collected from RunContext.notify."""
    return []


@pytest.fixture
def make_ctx(tmp_path: Path, build_config, http_registry, notices):
    """Factory: a RunContext with its own build path and an open run log."""
    logs: list[BuildLog] = []

    def _make(config=None, build_path: Path | None = None) -> RunContext:
        config = config or build_config()
        build_path = build_path or tmp_path / "build"
        build_path.mkdir(parents=True, exist_ok=True)
        log = BuildLog(tmp_path / "run.log").open()
        logs.append(log)
        return RunContext(
            config=config,
            prefix=tmp_path / "prefix",
            build_path=build_path,
            log=log,
            runner=CommandRunner(log),
            http_registry=http_registry,
            notify=notices.append,
        )

    yield _make
    for log in logs:
        log.close()


@pytest.fixture
def run_ctx(make_ctx) -> RunContext:
    return make_ctx()


@pytest.fixture
def make_client():
    """Factory for extra FakeHttpClient instances."""
    return FakeHttpClient
