"""
Shell tasks — ZSH itself, profile-only tweaks, and the prompt.

``ZshTask`` owns the profile document: it backs up whatever is there,
writes the base stanza, and carries over lines that belong to other
catalog tasks so already-installed tools keep working.  Every other
task only appends or removes its own lines.
"""

from __future__ import annotations

import logging
import pwd
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from devsetup.adapters.shell.filesystem import remove_path
from devsetup.core.errors import TaskError
from devsetup.core.services.detection import (
    TaskState,
    command_path,
    installed_packages,
    packages_state,
)
from devsetup.core.services.download import DownloadError, fetch_script, scratch_dir
from devsetup.core.tasks.base import ProvisionTask

if TYPE_CHECKING:
    from devsetup.core.context import RunContext

logger = logging.getLogger(__name__)

ZSH_BANNER = "# Fix for modern terminals like Kitty"

ZSH_BASE_PROFILE = f"""\
{ZSH_BANNER}
export TERM=xterm
# Set path if required
#export PATH=$GOPATH/bin:/usr/local/go/bin:$PATH
# Aliases
alias ec="sudo nvim ~/.zshrc"
alias sc="source ~/.zshrc"
alias ls="lsd"
alias fd="fdfind"
# Keep 5000 lines of history within the shell and save it to ~/.zsh_history:
HISTSIZE=5000
SAVEHIST=5000
HISTFILE=~/.zsh_history
# zplug - manage plugins
source /usr/share/zplug/init.zsh
zplug "zsh-users/zsh-syntax-highlighting"
zplug "zsh-users/zsh-autosuggestions"
zplug "zsh-users/zsh-history-substring-search"
zplug "zsh-users/zsh-completions"
# zplug - install/load new plugins when zsh is started or reloaded
if ! zplug check --verbose; then
    printf "Install? [y/N]: "
    if read -q; then
        echo; zplug install
    fi
fi
zplug load
# Enable completion caching
zstyle ':completion::complete:*' use-cache on
zstyle ':completion::complete:*' cache-path ~/.zsh/cache/$HOST
"""

FALLBACK_SHELL = "/bin/bash"


def login_shell(user: str) -> str:
    """The account's login shell from the passwd database."""
    try:
        return pwd.getpwnam(user).pw_shell
    except KeyError:
        return ""


class ZshTask(ProvisionTask):
    """Install zsh + zplug, write the base profile, make zsh the login shell.

    Re-running always backs up and rewrites the profile (refresh policy
    ``always``); package installation is skipped when already present.
    """

    PACKAGES = ("zsh", "zplug")

    def __init__(
        self,
        id,
        label,
        category="shell",
        *,
        preserve: Callable[[RunContext], Iterable[str]] | None = None,
        refresh="always",
    ):
        super().__init__(id, label, category, refresh=refresh)
        self.preserve = preserve

    def zsh_path(self, ctx: RunContext) -> str:
        return command_path("zsh", ctx.identity) or "/usr/bin/zsh"

    def detect_state(self, ctx: RunContext) -> TaskState:
        packages = packages_state(ctx.runner, self.PACKAGES)
        if packages is TaskState.ABSENT:
            return TaskState.ABSENT
        if (
            packages is TaskState.PRESENT
            and ctx.profile.contains(ZSH_BANNER)
            and login_shell(ctx.identity.user).endswith("zsh")
        ):
            return TaskState.PRESENT
        return TaskState.STALE

    def verify(self, ctx: RunContext) -> bool:
        return ctx.profile.count(ZSH_BANNER) == 1 and command_path("zsh") is not None

    def _carried_lines(self, ctx: RunContext) -> list[str]:
        if self.preserve is None:
            return []
        owned = {line.strip() for line in self.preserve(ctx)}
        base = {line.strip() for line in ZSH_BASE_PROFILE.splitlines()}
        carried: list[str] = []
        for line in ctx.profile.lines():
            key = line.strip()
            if key in owned and key not in base and key not in carried:
                carried.append(key)
        return carried

    def apply_install(self, ctx: RunContext) -> None:
        missing = [p for p in self.PACKAGES if p not in installed_packages(ctx.runner, self.PACKAGES)]
        if missing:
            self.run(ctx, ["apt-get", "install", "-y", *missing],
                     f"Failed to install {' '.join(missing)}")

        carried = self._carried_lines(ctx)
        content = ZSH_BASE_PROFILE + "".join(f"{line}\n" for line in carried)
        backup = ctx.profile.recreate(content)
        if backup:
            ctx.log.info(f"Existing profile backed up to {backup}")
        if carried:
            logger.info("Carried %d managed line(s) into the new profile", len(carried))

        shell = self.zsh_path(ctx)
        if login_shell(ctx.identity.user) != shell:
            self.run(ctx, ["chsh", "-s", shell, ctx.identity.user],
                     "Failed to change login shell")

    def apply_uninstall(self, ctx: RunContext) -> None:
        if login_shell(ctx.identity.user).endswith("zsh"):
            self.run(ctx, ["chsh", "-s", FALLBACK_SHELL, ctx.identity.user],
                     "Failed to restore login shell")
        present = installed_packages(ctx.runner, self.PACKAGES)
        if present:
            self.run(ctx, ["apt-get", "purge", "-y", *present],
                     f"Failed to purge {' '.join(present)}")
        for name in (ctx.settings.profile_name, ".zsh_history", ".zsh"):
            remove_path(ctx.identity.path(name))


class ProfileTask(ProvisionTask):
    """A task that consists only of owned profile lines."""

    def __init__(self, id, label, category, lines: Iterable[str], **kwargs):
        super().__init__(id, label, category, **kwargs)
        self.PROFILE_LINES = tuple(lines)

    def detect_state(self, ctx: RunContext) -> TaskState:
        lines = self.profile_lines(ctx)
        present = [line for line in lines if ctx.profile.contains(line)]
        if len(present) == len(lines):
            return TaskState.PRESENT
        return TaskState.STALE if present else TaskState.ABSENT

    def verify(self, ctx: RunContext) -> bool:
        return self.detect_state(ctx) is TaskState.PRESENT

    def apply_install(self, ctx: RunContext) -> None:
        """Nothing beyond the profile lines, which the executor applies."""

    def apply_uninstall(self, ctx: RunContext) -> None:
        """Nothing beyond the profile lines, which the executor removes."""


class StarshipTask(ProvisionTask):
    """Starship prompt via its upstream installer into a system bin dir."""

    INSTALLER_URL = "https://starship.rs/install.sh"
    PROFILE_LINES = ('eval "$(starship init zsh)"',)

    def __init__(self, id, label, category="shell", *, bin_dir: Path = Path("/usr/local/bin"), **kwargs):
        super().__init__(id, label, category, **kwargs)
        self.bin_dir = Path(bin_dir)

    @property
    def binary(self) -> Path:
        return self.bin_dir / "starship"

    def detect_state(self, ctx: RunContext) -> TaskState:
        return TaskState.PRESENT if self.binary.is_file() else TaskState.ABSENT

    def apply_install(self, ctx: RunContext) -> None:
        workdir = scratch_dir("starship")
        try:
            script = fetch_script(self.INSTALLER_URL, workdir)
            self.run(ctx, ["sh", str(script), "--yes", "--bin-dir", str(self.bin_dir)],
                     "Starship installer failed")
        except DownloadError as e:
            raise TaskError(self.id, "Failed to fetch Starship installer", str(e)) from e
        finally:
            remove_path(workdir)

    def apply_uninstall(self, ctx: RunContext) -> None:
        remove_path(self.binary)
