"""
Language toolchains — Node (nvm), Rust (rustup), Go, Python + Poetry.

Per-user toolchains (nvm, rustup, Poetry) are bootstrapped by their
upstream installers running as the target identity, so everything
under the home directory is owned by that user.  Go and CPython are
system-wide and installed as root.
"""

from __future__ import annotations

import logging
import os
import shlex
from pathlib import Path
from typing import TYPE_CHECKING

from devsetup.adapters.shell.filesystem import ensure_dir, remove_path
from devsetup.core.errors import TaskError
from devsetup.core.services.detection import (
    TaskState,
    command_version,
    version_state,
)
from devsetup.core.services.download import (
    DownloadError,
    download_file,
    extract_archive,
    fetch_script,
    machine_arch,
    scratch_dir,
)
from devsetup.core.tasks.base import ProvisionTask

if TYPE_CHECKING:
    from devsetup.core.context import RunContext

logger = logging.getLogger(__name__)


class _BootstrapMixin:
    """Fetch an upstream installer script and run it as the target user."""

    def bootstrap(self, ctx: RunContext, url: str, args: str, step: str, *, interpreter: str = "bash") -> None:
        workdir = scratch_dir(self.id)
        try:
            script = fetch_script(url, workdir)
            self.run_as_user(ctx, f"{interpreter} {shlex.quote(str(script))} {args}".strip(), step)
        except DownloadError as e:
            raise TaskError(self.id, f"Failed to fetch installer from {url}", str(e)) from e
        finally:
            remove_path(workdir)


# ── Node ────────────────────────────────────────────────────────


class NvmNodeTask(_BootstrapMixin, ProvisionTask):
    """nvm, a pinned Node.js as the default alias, and global pnpm/neovim."""

    PROFILE_LINES = (
        "# NVM Setup",
        'export NVM_DIR="$HOME/.nvm"',
        '[ -s "$NVM_DIR/nvm.sh" ] && \\. "$NVM_DIR/nvm.sh"',
    )
    GLOBAL_PACKAGES = ("pnpm", "neovim")
    _LOAD_NVM = 'export NVM_DIR="$HOME/.nvm"; . "$NVM_DIR/nvm.sh"'

    def nvm_dir(self, ctx: RunContext) -> Path:
        return ctx.identity.path(".nvm")

    def detect_state(self, ctx: RunContext) -> TaskState:
        nvm_dir = self.nvm_dir(ctx)
        if not (nvm_dir / "nvm.sh").is_file():
            return TaskState.ABSENT
        if (nvm_dir / "versions" / "node" / f"v{ctx.versions.node}").is_dir():
            return TaskState.PRESENT
        return TaskState.STALE

    def verify(self, ctx: RunContext) -> bool:
        return self.detect_state(ctx) is TaskState.PRESENT

    def apply_install(self, ctx: RunContext) -> None:
        if not (self.nvm_dir(ctx) / "nvm.sh").is_file():
            url = f"https://raw.githubusercontent.com/nvm-sh/nvm/v{ctx.versions.nvm}/install.sh"
            # PROFILE=/dev/null: the installer must not edit the profile, we own those lines.
            self.bootstrap(ctx, url, "", "nvm installer failed",
                           interpreter="PROFILE=/dev/null bash")

        node = ctx.versions.node
        script = "; ".join((
            self._LOAD_NVM,
            f"nvm install {node}",
            f"nvm alias default {node}",
            f"npm i -g {' '.join(self.GLOBAL_PACKAGES)}",
        ))
        self.run_as_user(ctx, script, f"Failed to install Node.js {node}")

    def apply_uninstall(self, ctx: RunContext) -> None:
        remove_path(self.nvm_dir(ctx))


# ── Rust ────────────────────────────────────────────────────────


class RustTask(_BootstrapMixin, ProvisionTask):
    """rustup stable toolchain in the target's ``~/.cargo``."""

    INSTALLER_URL = "https://sh.rustup.rs"
    PROFILE_LINES = (
        "# Rust setup",
        "source $HOME/.cargo/env",
    )

    def rustup(self, ctx: RunContext) -> Path:
        return ctx.identity.path(".cargo", "bin", "rustup")

    def detect_state(self, ctx: RunContext) -> TaskState:
        return TaskState.PRESENT if self.rustup(ctx).is_file() else TaskState.ABSENT

    def apply_install(self, ctx: RunContext) -> None:
        self.bootstrap(ctx, self.INSTALLER_URL, "-y --no-modify-path",
                       "rustup installer failed", interpreter="sh")

    def apply_uninstall(self, ctx: RunContext) -> None:
        if not self.rustup(ctx).is_file():
            return
        self.run_as_user(ctx, f"{shlex.quote(str(self.rustup(ctx)))} self uninstall -y",
                         "rustup self uninstall failed")


# ── Go ──────────────────────────────────────────────────────────


class GoTask(ProvisionTask):
    """Official Go tarball unpacked to ``<prefix>/go``, replacing any previous one."""

    PROFILE_LINES = (
        "# Go setup",
        "export PATH=$PATH:/usr/local/go/bin",
        "export GOPATH=$HOME/go",
        "export PATH=$PATH:$GOPATH/bin",
    )
    VERSION_PATTERN = r"go version go(\d+\.\d+(?:\.\d+)?)"

    def __init__(self, id, label, category="dev-tool", *, prefix: Path = Path("/usr/local"), **kwargs):
        super().__init__(id, label, category, **kwargs)
        self.prefix = Path(prefix)

    @property
    def goroot(self) -> Path:
        return self.prefix / "go"

    def detect_state(self, ctx: RunContext) -> TaskState:
        go = self.goroot / "bin" / "go"
        if not go.is_file():
            return TaskState.ABSENT
        found = command_version(ctx.runner, [str(go), "version"], self.VERSION_PATTERN)
        return version_state(found, ctx.versions.go)

    def verify(self, ctx: RunContext) -> bool:
        return self.detect_state(ctx) is TaskState.PRESENT

    def apply_install(self, ctx: RunContext) -> None:
        version = ctx.versions.go
        filename = f"go{version}.linux-{machine_arch()}.tar.gz"
        workdir = scratch_dir("go")
        try:
            archive = download_file(f"https://dl.google.com/go/{filename}", workdir / filename)
            remove_path(self.goroot)
            extract_archive(archive, self.prefix)
        except DownloadError as e:
            raise TaskError(self.id, f"Failed to install Go {version}", str(e)) from e
        finally:
            remove_path(workdir)

        gopath = ctx.identity.path("go")
        for sub in ("bin", "pkg", "src"):
            ensure_dir(gopath / sub, ctx.identity)

    def apply_uninstall(self, ctx: RunContext) -> None:
        remove_path(self.goroot)
        remove_path(ctx.identity.path("go"))


# ── Python + Poetry ─────────────────────────────────────────────


class PythonPoetryTask(_BootstrapMixin, ProvisionTask):
    """CPython compiled from source (``make altinstall``) plus Poetry for the user."""

    BUILD_DEPS = (
        "build-essential", "libssl-dev", "zlib1g-dev", "libncurses5-dev", "libnss3-dev",
        "libreadline-dev", "libffi-dev", "libsqlite3-dev", "wget", "libbz2-dev",
        "libgdbm-dev", "libdb-dev", "liblzma-dev", "tk-dev", "uuid-dev", "python3-pip",
    )
    PIP_PACKAGES = ("virtualenv", "pynvim")
    POETRY_URL = "https://install.python-poetry.org"
    PROFILE_LINES = (
        "# Add Poetry to PATH",
        "export PATH=$HOME/.local/bin:$PATH",
    )
    BEST_EFFORT_UNINSTALL = (
        "CPython was compiled from source; only its well-known install paths "
        "are removed, files placed elsewhere by `make altinstall` may remain."
    )

    def __init__(self, id, label, category="dev-tool", *, prefix: Path = Path("/usr/local"), **kwargs):
        super().__init__(id, label, category, **kwargs)
        self.prefix = Path(prefix)

    def python(self, ctx: RunContext) -> Path:
        return self.prefix / "bin" / f"python{ctx.versions.python_short}"

    def poetry(self, ctx: RunContext) -> Path:
        return ctx.identity.path(".local", "bin", "poetry")

    def python_state(self, ctx: RunContext) -> TaskState:
        python = self.python(ctx)
        if not python.is_file():
            return TaskState.ABSENT
        found = command_version(ctx.runner, [str(python), "--version"], r"Python\s+(\S+)")
        return version_state(found, ctx.versions.python)

    def detect_state(self, ctx: RunContext) -> TaskState:
        python = self.python_state(ctx)
        if python is TaskState.PRESENT and self.poetry(ctx).is_file():
            return TaskState.PRESENT
        if python is TaskState.ABSENT and not self.poetry(ctx).is_file():
            return TaskState.ABSENT
        return TaskState.STALE

    def verify(self, ctx: RunContext) -> bool:
        return self.detect_state(ctx) is TaskState.PRESENT

    def apply_install(self, ctx: RunContext) -> None:
        self.run(ctx, ["apt-get", "install", "-y", *self.BUILD_DEPS],
                 "Failed to install Python build dependencies")

        if self.python_state(ctx) is not TaskState.PRESENT:
            self._build_python(ctx)

        python = str(self.python(ctx))
        self.run(ctx, [python, "-m", "ensurepip"], "ensurepip failed")
        self.run(ctx, [python, "-m", "pip", "install", *self.PIP_PACKAGES],
                 f"Failed to install {' '.join(self.PIP_PACKAGES)}")

        if not self.poetry(ctx).is_file():
            self.bootstrap(ctx, self.POETRY_URL, "", "Poetry installer failed",
                           interpreter=shlex.quote(python))

    def _build_python(self, ctx: RunContext) -> None:
        version = ctx.versions.python
        workdir = scratch_dir("python")
        try:
            archive = download_file(
                f"https://www.python.org/ftp/python/{version}/Python-{version}.tgz",
                workdir / f"Python-{version}.tgz",
            )
            extract_archive(archive, workdir)
            src = str(workdir / f"Python-{version}")
            ctx.log.info(f"Compiling Python {version} (this takes a while)...")
            self.run(ctx, ["./configure", "--enable-optimizations", f"--prefix={self.prefix}"],
                     "configure failed", cwd=src)
            self.run(ctx, ["make", f"-j{os.cpu_count() or 1}"], "make failed", cwd=src)
            self.run(ctx, ["make", "altinstall"], "make altinstall failed", cwd=src)
        except DownloadError as e:
            raise TaskError(self.id, f"Failed to download Python {version}", str(e)) from e
        finally:
            remove_path(workdir)

    def apply_uninstall(self, ctx: RunContext) -> None:
        short = ctx.versions.python_short
        python = self.python(ctx)
        if self.poetry(ctx).is_file() and python.is_file():
            workdir = scratch_dir("poetry")
            try:
                script = fetch_script(self.POETRY_URL, workdir)
                self.best_effort(
                    ctx,
                    f"{shlex.quote(str(python))} {shlex.quote(str(script))} --uninstall",
                    "Poetry uninstaller",
                    as_user=ctx.identity,
                )
            except DownloadError as e:
                ctx.log.info(f"Poetry uninstaller unavailable ({e})")
            finally:
                remove_path(workdir)
        remove_path(self.poetry(ctx))

        for path in (
            python,
            self.prefix / "bin" / f"python{short}-config",
            self.prefix / "bin" / f"pip{short}",
            self.prefix / "bin" / f"idle{short}",
            self.prefix / "bin" / f"pydoc{short}",
            self.prefix / "lib" / f"python{short}",
            self.prefix / "include" / f"python{short}",
            self.prefix / "lib" / f"libpython{short}.a",
            self.prefix / "lib" / "pkgconfig" / f"python-{short}.pc",
        ):
            remove_path(path)
