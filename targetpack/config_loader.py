"""Configuration loading and validation logic."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence
import json
import tomllib

import yaml

from .errors import ConfigError
from .targets import DEFAULT_MANIFEST, DEFAULT_TOOL, RunConfig, Target


ConfigLoader = Callable[[Any], Mapping[str, Any]]

CONFIG_ENV_VAR = "TARGETPACK_CONFIG"

FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS))
        raise ConfigError(f"Unsupported configuration file extension: {suffix}. Supported: {supported}")

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    try:
        with path.open(mode, **kwargs) as handle:
            data = loader(handle)
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file '{path}': {exc.strerror or exc}") from exc
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot parse configuration file '{path}': {exc}") from exc

    if not isinstance(data, Mapping):
        raise ConfigError(f"Configuration file '{path}' must contain a mapping at the root")
    return data


def read_cargo_package_name(workspace: Path) -> str | None:
    """Return ``[package].name`` from ``Cargo.toml`` in ``workspace`` if there is one."""

    cargo = workspace / "Cargo.toml"
    if not cargo.is_file():
        return None
    try:
        with cargo.open("rb") as handle:
            data = tomllib.load(handle)
    except OSError as exc:
        raise ConfigError(f"Cannot read '{cargo}': {exc.strerror or exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Cannot parse '{cargo}': {exc}") from exc
    package = data.get("package")
    if isinstance(package, Mapping) and package.get("name"):
        return str(package["name"])
    return None


def normalize_string_list(value: Any, *, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        return [text] if text else []
    if isinstance(value, Sequence):
        items: List[str] = []
        for item in value:
            if not isinstance(item, str):
                raise ConfigError(f"{field_name} entries must be strings")
            if item.strip():
                items.append(item.strip())
        return items
    raise ConfigError(f"{field_name} must be a string or sequence of strings")


def parse_bool(value: Any, *, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{field_name} must be a boolean, got '{value}'")


def _optional_str(section: Mapping[str, Any], key: str) -> str | None:
    value = section.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value.strip() or None


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"[{key}] must be a table")
    return value


@dataclass(slots=True)
class RunOverrides:
    """Values supplied on the command line; ``None`` means "not given"."""

    targets: List[str] = field(default_factory=list)
    clean: bool | None = None
    scope: str | None = None
    package_name: str | None = None
    workspace: Path | None = None
    tool: str | None = None
    profile: str | None = None
    extra_args: List[str] = field(default_factory=list)
    manifest: str | None = None
    jobs: int | None = None
    timeout: float | None = None
    check_tool: bool | None = None
    dry_run: bool = False


def _pick(override: Any, section: Mapping[str, Any], key: str, default: Any) -> Any:
    if override is not None:
        return override
    return section.get(key, default)


def build_run_config(
    data: Mapping[str, Any],
    overrides: RunOverrides,
    *,
    base_dir: Path,
) -> RunConfig:
    """Combine a configuration mapping with command-line overrides.

    ``base_dir`` anchors a relative ``workspace`` from the file; it is the
    directory holding the configuration file, or the current directory.
    """

    run_section = _section(data, "run")
    targets_section = _section(data, "targets")

    if overrides.workspace is not None:
        workspace = overrides.workspace
    else:
        workspace = Path(_optional_str(run_section, "workspace") or ".")
        if not workspace.is_absolute():
            workspace = base_dir / workspace
    workspace = workspace.expanduser().resolve()

    scope = overrides.scope or _optional_str(run_section, "scope")
    package_name = (
        overrides.package_name
        or _optional_str(run_section, "package_name")
        or read_cargo_package_name(workspace)
    )
    if not package_name:
        raise ConfigError(
            "Package name is not configured: pass --package-name, set run.package_name, "
            "or run inside a crate with Cargo.toml"
        )

    names = list(overrides.targets) or [str(name) for name in targets_section]
    if not names:
        raise ConfigError("No targets given: pass --target or declare [targets] in the configuration")

    targets: List[Target] = []
    for name in names:
        entry = targets_section.get(name, {}) or {}
        if not isinstance(entry, Mapping):
            raise ConfigError(f"[targets.{name}] must be a table")
        targets.append(
            Target.create(
                name,
                package_name=_optional_str(entry, "package_name") or package_name,
                package_scope=_optional_str(entry, "scope") or scope,
                build_mode=_optional_str(entry, "mode"),
                output_dir=_optional_str(entry, "output_dir"),
                output_basename=_optional_str(entry, "output_basename"),
            )
        )

    environment_section = _section(run_section, "environment")
    jobs = _pick(overrides.jobs, run_section, "jobs", 1)
    timeout = _pick(overrides.timeout, run_section, "timeout", None)
    try:
        jobs = int(jobs)
        timeout = float(timeout) if timeout is not None else None
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid numeric setting: {exc}") from exc

    return RunConfig(
        targets=targets,
        workspace=workspace,
        clean=parse_bool(_pick(overrides.clean, run_section, "clean", True), field_name="clean"),
        tool=overrides.tool or _optional_str(run_section, "tool") or DEFAULT_TOOL,
        profile=overrides.profile or _optional_str(run_section, "profile"),
        extra_args=[
            *normalize_string_list(run_section.get("extra_args"), field_name="extra_args"),
            *overrides.extra_args,
        ],
        environment={str(key): str(value) for key, value in environment_section.items()},
        manifest=overrides.manifest or _optional_str(run_section, "manifest") or DEFAULT_MANIFEST,
        jobs=jobs,
        timeout=timeout,
        check_tool=parse_bool(
            _pick(overrides.check_tool, run_section, "check_tool", False), field_name="check_tool"
        ),
        dry_run=overrides.dry_run,
    )


def load_run_config(path: Path | None, overrides: RunOverrides, *, cwd: Path) -> RunConfig:
    """Load ``path`` (if any) and merge ``overrides`` into a validated :class:`RunConfig`."""

    if path is None:
        return build_run_config({}, overrides, base_dir=cwd)
    path = path if path.is_absolute() else cwd / path
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")
    return build_run_config(load_config_file(path), overrides, base_dir=path.parent)
