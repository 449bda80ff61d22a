"""Error types raised while cleaning, building and patching targets."""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Sequence
import shlex


class Phase(str, Enum):
    PREFLIGHT = "preflight"
    CLEAN = "clean"
    BUILD = "build"
    PATCH = "patch"


class ConfigError(ValueError):
    """Raised when the run configuration is invalid."""


class TargetpackError(RuntimeError):
    """Base class for failures of a run.

    Every error records the target it belongs to and the phase it happened in,
    so the command line can report ``target 'node' failed during build``.
    """

    def __init__(self, detail: str, *, target_name: str | None, phase: Phase) -> None:
        self.detail = detail
        self.target_name = target_name
        self.phase = phase
        super().__init__(self._format())

    def _format(self) -> str:
        if self.target_name is None:
            return f"{self.phase.value} failed: {self.detail}"
        return f"target '{self.target_name}' failed during {self.phase.value}: {self.detail}"


class FilesystemError(TargetpackError):
    """Raised when an output directory or manifest cannot be read, written or removed."""

    def __init__(self, detail: str, *, target_name: str | None, phase: Phase, path: Path) -> None:
        self.path = path
        super().__init__(detail, target_name=target_name, phase=phase)


class BuildToolError(TargetpackError):
    """Raised when the build tool exits non-zero, times out or cannot be started."""

    def __init__(
        self,
        *,
        target_name: str | None,
        command: Sequence[str] = (),
        exit_code: int | None = None,
        captured_output: str = "",
        timed_out: bool = False,
        detail: str | None = None,
        phase: Phase = Phase.BUILD,
    ) -> None:
        self.command = list(command)
        self.exit_code = exit_code
        self.captured_output = captured_output
        self.timed_out = timed_out
        if detail is None:
            rendered = " ".join(shlex.quote(part) for part in self.command)
            if timed_out:
                detail = f"timed out: {rendered}"
            else:
                detail = f"exit code {exit_code}: {rendered}"
        if captured_output:
            detail = f"{detail}\n{captured_output}"
        super().__init__(detail, target_name=target_name, phase=phase)


class ToolNotFoundError(BuildToolError):
    """Raised by the pre-flight check when the build tool is not on PATH."""

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(
            target_name=None,
            command=[tool],
            detail=f"build tool '{tool}' was not found on PATH",
            phase=Phase.PREFLIGHT,
        )


class ManifestFormatError(TargetpackError):
    """Raised when the generated manifest does not contain the expected package name."""

    def __init__(self, *, target_name: str, path: Path, pattern: str) -> None:
        self.path = path
        self.pattern = pattern
        super().__init__(
            f"expected package name {pattern} not found in {path}",
            target_name=target_name,
            phase=Phase.PATCH,
        )
