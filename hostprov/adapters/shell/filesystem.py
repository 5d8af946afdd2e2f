"""
Filesystem actions — idempotent edits to configuration files.

FileBlockAction makes sure a block of text is present in a file,
creating the file (and its directory) if needed. LineReplaceAction
rewrites lines matching a pattern and optionally runs a follow-up
command, e.g. reloading the daemon that reads the file.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import tempfile
from pathlib import Path

from hostprov.adapters.base import Action
from hostprov.core.errors import ExecutionError, StepTimeoutError
from hostprov.core.models.host import Host

logger = logging.getLogger(__name__)


def _secure(path: Path, mode: int, owner: str | None, group: str | None) -> None:
    if owner or group:
        shutil.chown(path, user=owner, group=group)
    os.chmod(path, mode)


class FileBlockAction(Action):
    """Ensure a text block is present in a file.

    Action params:
        path: Target file.
        block: Text to append when missing.
        marker: Substring proving the block is present
            (default: the block's first non-empty line).
        owner / group: Applied to the file and any directory created.
        mode / dir_mode: Permissions for the file and a created directory.
    """

    def __init__(
        self,
        name: str,
        path: str | Path,
        block: str,
        *,
        marker: str | None = None,
        owner: str | None = None,
        group: str | None = None,
        mode: int = 0o600,
        dir_mode: int = 0o700,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        if not block.strip():
            raise ValueError(f"Step '{name}': 'block' must not be empty")
        self.path = Path(path)
        self.block = block.rstrip("\n") + "\n"
        self.marker = marker or next(line.strip() for line in block.splitlines() if line.strip())
        self.owner = owner
        self.group = group
        self.mode = mode
        self.dir_mode = dir_mode

    def precondition(self, host: Host) -> bool:
        if not self.path.is_file():
            return False
        return self.marker in self.path.read_text(encoding="utf-8")

    def apply(self, host: Host) -> str | None:
        parent = self.path.parent
        if not parent.is_dir():
            parent.mkdir(parents=True)
            try:
                _secure(parent, self.dir_mode, self.owner, self.group)
            except BaseException:
                parent.rmdir()
                raise
            logger.info("[%s] created directory %s", self.name, parent)

        if self.path.is_file():
            content = self.path.read_text(encoding="utf-8") + "\n" + self.block
            summary = f"Appended block to {self.path}"
        else:
            content = self.block
            summary = f"Created {self.path}"

        # Ownership and mode are set on the temp file, so the target never
        # exists with the new content under the wrong permissions.
        fd, tmp = tempfile.mkstemp(dir=parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            _secure(Path(tmp), self.mode, self.owner, self.group)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

        logger.info("[%s] %s", self.name, summary)
        return summary


class LineReplaceAction(Action):
    """Rewrite lines matching a pattern, then run an optional command.

    The precondition holds when no line matches, so a missing file or an
    already-rewritten file is a no-op.
    """

    def __init__(
        self,
        name: str,
        path: str | Path,
        pattern: str,
        replacement: str,
        *,
        then: str | None = None,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self.path = Path(path)
        self.pattern = re.compile(pattern, re.MULTILINE)
        self.replacement = replacement
        self.then = then

    def precondition(self, host: Host) -> bool:
        if not self.path.is_file():
            return True
        return self.pattern.search(self.path.read_text(encoding="utf-8")) is None

    def apply(self, host: Host) -> str | None:
        original = self.path.read_text(encoding="utf-8")
        updated, count = self.pattern.subn(self.replacement, original)
        self.path.write_text(updated, encoding="utf-8")
        logger.info("[%s] rewrote %d line(s) in %s", self.name, count, self.path)

        if self.then:
            try:
                self._run_follow_up(host)
            except BaseException:
                # Put the old lines back so the next run retries the edit.
                self.path.write_text(original, encoding="utf-8")
                logger.warning("[%s] follow-up failed, restored %s", self.name, self.path)
                raise
        return f"Rewrote {count} line(s) in {self.path}"

    def _run_follow_up(self, host: Host) -> None:
        try:
            result = subprocess.run(
                self.then,
                shell=True,
                capture_output=True,
                text=True,
                env=host.environment(),
                timeout=host.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise StepTimeoutError(
                f"Follow-up timed out after {host.timeout}s: {self.then}", host.timeout
            ) from e
        if result.returncode != 0:
            raise ExecutionError(
                f"Follow-up exited with code {result.returncode}: {self.then}\n"
                f"{result.stderr.strip()}",
                result.returncode,
            )
