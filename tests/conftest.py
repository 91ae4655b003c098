"""Shared fixtures for binforge tests."""

import logging
import os
import sys
import textwrap
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from binforge.build.compiler import BuildError, IBuildInvoker
from binforge.build.staging import atomic_copy
from binforge.config import BuildTarget, Settings, WorkspaceConfig
from binforge.packages.toolchain import TargetResolver, ToolchainTarget

TRIPLE = "x86_64-unknown-linux-gnu"

# Two programs sharing src/, and one depending on narrower shared trees
WORKSPACE_INI = """\
[workspace]
root_manifest = Cargo.toml

[target:zkas]
source_dir = bin/zkas
shared_dirs = src/serial, src/zkas

[target:lilith]
source_dir = bin/lilith
shared_dirs = src

[target:taud]
source_dir = bin/tau/taud
shared_dirs = src
"""

WORKSPACE_FILES = [
    "Cargo.toml",
    "src/lib.rs",
    "src/net/mod.rs",
    "src/serial/mod.rs",
    "src/zkas/mod.rs",
    "bin/zkas/Cargo.toml",
    "bin/zkas/src/main.rs",
    "bin/lilith/Cargo.toml",
    "bin/lilith/src/main.rs",
    "bin/tau/taud/Cargo.toml",
    "bin/tau/taud/src/main.rs",
    "bin/tau/taud/src/util.rs",
]


def set_mtime(path: Path, seconds: int) -> None:
    """Set both access and modification time to whole seconds."""
    ns = seconds * 1_000_000_000
    os.utime(path, ns=(ns, ns))


class Workspace:
    """A fake multi-program workspace rooted in a temporary directory."""

    BASE_TIME = 1_000_000

    def __init__(self, root: Path):
        root.mkdir(parents=True, exist_ok=True)
        self.root = root.resolve()
        for relative in WORKSPACE_FILES:
            self.write(relative, f"// {relative}\n", mtime=self.BASE_TIME)
        (self.root / "binforge.ini").write_text(WORKSPACE_INI)

    def path(self, relative: str) -> Path:
        return self.root / relative

    def write(self, relative: str, content: str = "", mtime: Optional[int] = None) -> Path:
        path = self.path(relative)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        if mtime is not None:
            set_mtime(path, mtime)
        return path

    def touch(self, relative: str, mtime: int) -> Path:
        path = self.path(relative)
        set_mtime(path, mtime)
        return path

    def config(self) -> WorkspaceConfig:
        return WorkspaceConfig.load(self.root)

    def stage(self, name: str, content: str = "binary", mtime: Optional[int] = None) -> Path:
        """Pretend a target was built earlier."""
        return self.write(name, content, mtime=self.BASE_TIME if mtime is None else mtime)


class FakeInvoker(IBuildInvoker):
    """Invoker that "compiles" by writing a file; records every call."""

    def __init__(self, config: WorkspaceConfig, fail: Optional[Dict[str, int]] = None):
        self.config = config
        self.fail = dict(fail or {})
        self.calls: List[str] = []
        self.mtime = Workspace.BASE_TIME + 100

    def build_command(self, target: BuildTarget, toolchain_target: ToolchainTarget) -> List[str]:
        return ["cargo", "build", f"--target={toolchain_target.triple}", "--release",
                "--package", target.package]

    def artifact_path(self, target: BuildTarget, toolchain_target: ToolchainTarget) -> Path:
        return self.config.output_root() / toolchain_target.triple / "release" / target.package

    def build(self, target: BuildTarget, toolchain_target: ToolchainTarget) -> Path:
        self.calls.append(target.name)
        if target.name in self.fail:
            raise BuildError(target.name, self.fail[target.name], "error: could not compile")

        artifact = self.artifact_path(target, toolchain_target)
        artifact.parent.mkdir(parents=True, exist_ok=True)
        artifact.write_text(f"{target.name} for {toolchain_target.triple}\n")
        staged = atomic_copy(artifact, self.config.staged_path(target))
        set_mtime(staged, self.mtime)
        return staged


@pytest.fixture
def workspace(tmp_path):
    """Fake workspace with zkas, lilith and taud targets."""
    return Workspace(tmp_path / "workspace")


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's environment."""
    return Settings(
        prefix=tmp_path / "prefix",
        destdir="",
        rustflags=None,
        rust_target=None,
        cargo=["cargo", "+nightly"],
        rustc="rustc",
        jobs=2,
        env={"PATH": os.environ.get("PATH", ""), "HOME": str(tmp_path)},
    )


@pytest.fixture
def resolver():
    """Resolver that never queries a real compiler."""
    return TargetResolver(override=TRIPLE)


@pytest.fixture
def fake_invoker(workspace):
    return FakeInvoker(workspace.config())


@pytest.fixture
def fake_cargo(tmp_path):
    """Executable stand-in for cargo and rustc.

    `rustc -Vv` prints a host line. `cargo build --target=T --release
    --package P` writes target/T/release/P in the working directory, fails
    when FAKE_CARGO_FAIL names the package, and appends each call to
    FAKE_CARGO_LOG.
    """
    bin_dir = tmp_path / "fakebin"
    bin_dir.mkdir()

    script = bin_dir / "fake-cargo"
    script.write_text(textwrap.dedent(f"""\
        #!{sys.executable}
        import os
        import sys
        from pathlib import Path

        args = sys.argv[1:]
        if args and args[0] == "-Vv":
            print("rustc 1.80.0-nightly")
            print("host: {TRIPLE}")
            sys.exit(0)

        args = [a for a in args if not a.startswith("+")]
        triple = next(a.split("=", 1)[1] for a in args if a.startswith("--target="))
        package = args[args.index("--package") + 1]

        log = os.environ.get("FAKE_CARGO_LOG")
        if log:
            with open(log, "a") as f:
                f.write(f"{{package}} {{triple}} {{os.environ.get('RUSTFLAGS', '<unset>')}}\\n")

        if package in os.environ.get("FAKE_CARGO_FAIL", "").split(","):
            sys.stderr.write(f"error: could not compile `{{package}}`\\n")
            sys.exit(101)

        out = Path(os.environ.get("CARGO_TARGET_DIR", "target")) / triple / "release"
        out.mkdir(parents=True, exist_ok=True)
        (out / package).write_text(f"binary {{package}} {{triple}}\\n")
    """))
    script.chmod(0o755)
    return script


@pytest.fixture
def fake_invoker_class():
    """FakeInvoker class, for tests that need several instances or a subclass."""
    return FakeInvoker


@pytest.fixture
def triple():
    return TRIPLE


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by setup_logging() during a test."""
    yield
    logger = logging.getLogger()
    for handler in list(logger.handlers):
        if getattr(handler, "_binforge", False):
            logger.removeHandler(handler)
            handler.close()
