"""
Editor and terminal tooling — tmux (from source), Neovim + LazyVim, Nerd Font.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import TYPE_CHECKING

from devsetup.adapters.shell.filesystem import (
    chown_tree,
    ensure_dir,
    remove_path,
    write_if_changed,
)
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
    machine_arch,
    scratch_dir,
)
from devsetup.core.tasks.base import ProvisionTask

if TYPE_CHECKING:
    from devsetup.core.context import RunContext

logger = logging.getLogger(__name__)


TMUX_CONF = """\
set -g default-terminal "screen-256color"
set -g prefix C-a
bind C-a send-prefix
bind r source-file ~/.tmux.conf \\; display "Config reloaded!"
bind | split-window -h
bind - split-window -v
set -g mouse on
"""


class TmuxTask(ProvisionTask):
    """tmux built from a release tag, plus the user's ``~/.tmux.conf``.

    Without a package-manager record the installed version is read from
    ``tmux -V`` on the installed binary.
    """

    REPO = "https://github.com/tmux/tmux.git"
    BUILD_DEPS = (
        "git", "automake", "build-essential", "pkg-config",
        "libevent-dev", "libncurses5-dev", "bison",
    )
    BEST_EFFORT_UNINSTALL = (
        "tmux was built from source; the binary and man page are removed, "
        "other files written by `make install` may remain."
    )

    def __init__(self, id, label, category="dev-tool", *, prefix: Path = Path("/usr/local"), **kwargs):
        super().__init__(id, label, category, **kwargs)
        self.prefix = Path(prefix)

    @property
    def binary(self) -> Path:
        return self.prefix / "bin" / "tmux"

    def conf(self, ctx: RunContext) -> Path:
        return ctx.identity.path(".tmux.conf")

    def detect_state(self, ctx: RunContext) -> TaskState:
        if not self.binary.is_file():
            return TaskState.ABSENT
        found = command_version(ctx.runner, [str(self.binary), "-V"], r"tmux\s+(\S+)")
        state = version_state(found, ctx.versions.tmux)
        if state is TaskState.PRESENT and not self.conf(ctx).is_file():
            return TaskState.STALE
        return state

    def verify(self, ctx: RunContext) -> bool:
        return self.detect_state(ctx) is TaskState.PRESENT

    def apply_install(self, ctx: RunContext) -> None:
        self.run(ctx, ["apt-get", "install", "-y", *self.BUILD_DEPS],
                 "Failed to install tmux build dependencies")

        found = None
        if self.binary.is_file():
            found = command_version(ctx.runner, [str(self.binary), "-V"], r"tmux\s+(\S+)")
        if found != ctx.versions.tmux or ctx.refresh_policy(self.id, self.refresh) == "always":
            self._build(ctx)

        if write_if_changed(self.conf(ctx), TMUX_CONF, owner=ctx.identity):
            logger.info("[%s] wrote %s", self.id, self.conf(ctx))

    def _build(self, ctx: RunContext) -> None:
        tag = ctx.versions.tmux
        workdir = scratch_dir("tmux")
        src = str(workdir / "tmux")
        try:
            ctx.log.info(f"Building tmux {tag} from source...")
            self.run(ctx, ["git", "clone", self.REPO, src], "git clone failed")
            self.run(ctx, ["git", "checkout", tag], f"git checkout {tag} failed", cwd=src)
            self.run(ctx, ["sh", "autogen.sh"], "autogen.sh failed", cwd=src)
            self.run(ctx, ["./configure", f"--prefix={self.prefix}"], "configure failed", cwd=src)
            self.run(ctx, ["make"], "make failed", cwd=src)
            self.run(ctx, ["make", "install"], "make install failed", cwd=src)
        finally:
            remove_path(workdir)

    def apply_uninstall(self, ctx: RunContext) -> None:
        remove_path(self.binary)
        remove_path(self.prefix / "share" / "man" / "man1" / "tmux.1")
        remove_path(self.conf(ctx))


class NeovimTask(ProvisionTask):
    """Neovim release tarball unpacked into the home dir, plus the LazyVim starter."""

    STARTER_REPO = "https://github.com/LazyVim/starter"
    PROFILE_LINES = ("alias nvim='{home}/nvim-linux-{arch}/bin/nvim'",)
    BEST_EFFORT_UNINSTALL = (
        "Plugin data under ~/.local/share/nvim and ~/.local/state/nvim is left in place."
    )

    @staticmethod
    def arch() -> str:
        return machine_arch(raw=True)

    def nvim_dir(self, ctx: RunContext) -> Path:
        return ctx.identity.path(f"nvim-linux-{self.arch()}")

    def config_dir(self, ctx: RunContext) -> Path:
        return ctx.identity.path(".config", "nvim")

    def profile_lines(self, ctx: RunContext) -> tuple[str, ...]:
        return tuple(line.replace("{arch}", self.arch()) for line in super().profile_lines(ctx))

    def detect_state(self, ctx: RunContext) -> TaskState:
        nvim = self.nvim_dir(ctx) / "bin" / "nvim"
        if not nvim.is_file():
            return TaskState.ABSENT
        found = command_version(ctx.runner, [str(nvim), "--version"], r"NVIM v(\S+)")
        state = version_state(found, ctx.versions.neovim)
        if state is TaskState.PRESENT and not self.config_dir(ctx).is_dir():
            return TaskState.STALE
        return state

    def verify(self, ctx: RunContext) -> bool:
        return self.detect_state(ctx) is TaskState.PRESENT

    def apply_install(self, ctx: RunContext) -> None:
        version = ctx.versions.neovim
        filename = f"nvim-linux-{self.arch()}.tar.gz"
        url = f"https://github.com/neovim/neovim/releases/download/v{version}/{filename}"
        workdir = scratch_dir("nvim")
        try:
            archive = download_file(url, workdir / filename)
            remove_path(self.nvim_dir(ctx))
            extract_archive(archive, ctx.identity.home)
        except DownloadError as e:
            raise TaskError(self.id, f"Failed to install Neovim {version}", str(e)) from e
        finally:
            remove_path(workdir)
        chown_tree(self.nvim_dir(ctx), ctx.identity)

        config = self.config_dir(ctx)
        if not config.is_dir():
            ensure_dir(config.parent, ctx.identity)
            self.run_as_user(
                ctx,
                f"git clone {self.STARTER_REPO} {shlex.quote(str(config))}",
                "Failed to clone LazyVim starter",
            )
            try:
                if not remove_path(config / ".git"):
                    ctx.log.info("LazyVim starter has no .git directory to remove")
            except OSError as e:
                ctx.log.info(f"Removing the LazyVim .git directory skipped ({e})")

    def apply_uninstall(self, ctx: RunContext) -> None:
        remove_path(self.nvim_dir(ctx))
        remove_path(self.config_dir(ctx))


class NerdFontTask(ProvisionTask):
    """Hack Nerd Font into ``~/.local/share/fonts/Hack``."""

    FONT = "Hack"

    def font_dir(self, ctx: RunContext) -> Path:
        return ctx.identity.path(".local", "share", "fonts", self.FONT)

    def detect_state(self, ctx: RunContext) -> TaskState:
        font_dir = self.font_dir(ctx)
        if font_dir.is_dir() and any(font_dir.iterdir()):
            return TaskState.PRESENT
        return TaskState.ABSENT

    def apply_install(self, ctx: RunContext) -> None:
        version = ctx.versions.nerd_font
        url = (
            "https://github.com/ryanoasis/nerd-fonts/releases/download/"
            f"v{version}/{self.FONT}.zip"
        )
        workdir = scratch_dir("font")
        font_dir = self.font_dir(ctx)
        try:
            archive = download_file(url, workdir / f"{self.FONT}.zip")
            ensure_dir(font_dir, ctx.identity)
            extract_archive(archive, font_dir)
        except DownloadError as e:
            raise TaskError(self.id, "Failed to download Nerd Font", str(e)) from e
        finally:
            remove_path(workdir)
        chown_tree(font_dir, ctx.identity)
        self.best_effort(ctx, ["fc-cache", "-f"], "Font cache refresh")

    def apply_uninstall(self, ctx: RunContext) -> None:
        if remove_path(self.font_dir(ctx)):
            self.best_effort(ctx, ["fc-cache", "-f"], "Font cache refresh")
