"""Targets and run settings consumed by the orchestrator."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List

from .errors import ConfigError


class BuildMode(str, Enum):
    NODEJS = "nodejs"
    BROWSER = "browser"
    WEB = "web"
    BUNDLER = "bundler"
    NO_MODULES = "no-modules"
    DENO = "deno"

    @classmethod
    def parse(cls, value: str) -> "BuildMode":
        text = str(value).strip().lower()
        text = _MODE_ALIASES.get(text, text)
        try:
            return cls(text)
        except ValueError:
            allowed = ", ".join(mode.value for mode in cls)
            raise ConfigError(f"Unknown build mode '{value}'. Allowed: {allowed}") from None


_MODE_ALIASES: Dict[str, str] = {
    "node": "nodejs",
}

PROFILES = ("release", "dev", "profiling")
DEFAULT_TOOL = "wasm-pack"
DEFAULT_MANIFEST = "package.json"


@dataclass(frozen=True, slots=True)
class Target:
    name: str
    build_mode: BuildMode
    output_dir: Path
    output_basename: str
    package_scope: str | None
    package_name: str

    @classmethod
    def create(
        cls,
        name: str,
        *,
        package_name: str,
        package_scope: str | None = None,
        build_mode: str | BuildMode | None = None,
        output_dir: str | Path | None = None,
        output_basename: str | None = None,
    ) -> "Target":
        """Build a target, deriving unset fields from ``name`` (``pkg-<name>``, ``<package>-<name>``)."""

        name = str(name).strip()
        if not name:
            raise ConfigError("Target name must not be empty")
        if not package_name:
            raise ConfigError(f"Target '{name}' requires a package name")
        if build_mode is None:
            mode = BuildMode.parse(name)
        elif isinstance(build_mode, BuildMode):
            mode = build_mode
        else:
            mode = BuildMode.parse(build_mode)
        return cls(
            name=name,
            build_mode=mode,
            output_dir=Path(output_dir) if output_dir else Path(f"pkg-{name}"),
            output_basename=output_basename or f"{package_name}-{name}",
            package_scope=package_scope or None,
            package_name=package_name,
        )

    @property
    def manifest_name(self) -> str:
        """Package name as written by the build tool."""

        if self.package_scope:
            return f"@{self.package_scope}/{self.package_name}"
        return self.package_name

    @property
    def patched_manifest_name(self) -> str:
        return f"{self.manifest_name}-{self.name}"


@dataclass(slots=True)
class RunConfig:
    targets: List[Target]
    workspace: Path
    clean: bool = True
    tool: str = DEFAULT_TOOL
    profile: str | None = None
    extra_args: List[str] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)
    manifest: str = DEFAULT_MANIFEST
    jobs: int = 1
    timeout: float | None = None
    check_tool: bool = False
    dry_run: bool = False

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not self.targets:
            raise ConfigError("At least one target is required")
        if self.profile is not None and self.profile not in PROFILES:
            raise ConfigError(f"Unknown profile '{self.profile}'. Allowed: {', '.join(PROFILES)}")
        if self.jobs < 1:
            raise ConfigError("jobs must be at least 1")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if not self.manifest or Path(self.manifest).name != self.manifest:
            raise ConfigError(f"Manifest must be a plain file name, got '{self.manifest}'")

        names: set[str] = set()
        outputs: Dict[Path, str] = {}
        for target in self.targets:
            if target.name in names:
                raise ConfigError(f"Duplicate target name '{target.name}'")
            names.add(target.name)
            resolved = self.output_path(target)
            other = outputs.get(resolved)
            if other is not None:
                raise ConfigError(
                    f"Targets '{other}' and '{target.name}' share the output directory '{resolved}'"
                )
            outputs[resolved] = target.name

    def output_location(self, target: Target) -> Path:
        """Output directory joined to the workspace, with symlinks left unresolved."""

        path = target.output_dir
        if not path.is_absolute():
            path = self.workspace / path
        return path

    def output_path(self, target: Target) -> Path:
        return self.output_location(target).resolve()

    def manifest_path(self, target: Target) -> Path:
        return self.output_path(target) / self.manifest

