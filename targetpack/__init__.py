"""Build one package per target and give each generated manifest its own name."""
from __future__ import annotations

from .cli import main
from .errors import BuildToolError, ConfigError, FilesystemError, ManifestFormatError, Phase, TargetpackError
from .orchestrator import Orchestrator, RunResult
from .targets import BuildMode, RunConfig, Target

__all__ = [
    "BuildMode",
    "BuildToolError",
    "ConfigError",
    "FilesystemError",
    "ManifestFormatError",
    "Orchestrator",
    "Phase",
    "RunConfig",
    "RunResult",
    "Target",
    "TargetpackError",
    "main",
]
