"""Clean, build and rename one package per target."""
from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence
import shutil
import threading

from .command_runner import CommandError, CommandResult, CommandRunner
from .console import Console
from .errors import BuildToolError, FilesystemError, Phase, TargetpackError, ToolNotFoundError
from .manifest import patch_manifest
from .targets import RunConfig, Target


@dataclass(slots=True)
class TargetOutcome:
    target: Target
    command_result: CommandResult
    manifest_path: Path


@dataclass(slots=True)
class RunResult:
    outcomes: List[TargetOutcome] = field(default_factory=list)

    @property
    def target_names(self) -> List[str]:
        return [outcome.target.name for outcome in self.outcomes]


class _Stopped(Exception):
    """Raised inside a worker that was told not to start its target."""


class Orchestrator:
    """Runs the build tool for each target and renames the generated manifests.

    Targets run in declaration order and the first failure stops the run.
    With ``config.jobs > 1`` targets are built on a thread pool instead; each
    target still builds and patches back to back, and no target starts after
    another has failed.
    """

    def __init__(self, config: RunConfig, *, command_runner: CommandRunner, console: Console) -> None:
        self._config = config
        self._runner = command_runner
        self._console = console

    @property
    def config(self) -> RunConfig:
        return self._config

    def command_for(self, target: Target) -> List[str]:
        config = self._config
        command = [
            config.tool,
            "build",
            "--target",
            target.build_mode.value,
            "--out-dir",
            str(config.output_path(target)),
            "--out-name",
            target.output_basename,
        ]
        if target.package_scope:
            command.extend(["--scope", target.package_scope])
        if config.profile:
            command.append(f"--{config.profile}")
        command.extend(config.extra_args)
        return command

    def format_command(self, target: Target) -> str:
        return self._runner.format_command(self.command_for(target))

    def preflight(self) -> None:
        if shutil.which(self._config.tool) is None:
            raise ToolNotFoundError(self._config.tool)
        self._console.debug(f"Found build tool: {self._config.tool}")

    def clean(self, targets: Sequence[Target]) -> None:
        for target in targets:
            path = self._config.output_location(target)
            if self._config.dry_run:
                self._console.dry(f"remove {path}")
                continue
            try:
                if path.is_dir() and not path.is_symlink():
                    shutil.rmtree(path)
                    self._console.info(f"Removed {path}")
                elif path.exists() or path.is_symlink():
                    path.unlink()
                    self._console.info(f"Removed {path}")
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise FilesystemError(
                    f"cannot remove {path}: {exc.strerror or exc}",
                    target_name=target.name,
                    phase=Phase.CLEAN,
                    path=path,
                ) from exc

    def build(self, target: Target) -> CommandResult:
        command = self.command_for(target)
        self._console.info(f"Building target '{target.name}' ({target.build_mode.value})")
        self._console.debug(self._runner.format_command(command))
        try:
            return self._runner.run(
                command,
                cwd=self._config.workspace,
                env=self._config.environment or None,
                note=f"build {target.name}",
                timeout=self._config.timeout,
            )
        except CommandError as exc:
            result = exc.result
            raise BuildToolError(
                target_name=target.name,
                command=result.command,
                exit_code=result.returncode,
                captured_output=result.output,
                timed_out=result.timed_out,
            ) from exc
        except OSError as exc:
            raise BuildToolError(
                target_name=target.name,
                command=command,
                detail=f"cannot execute '{command[0]}': {exc.strerror or exc}",
            ) from exc

    def patch_manifest(self, target: Target) -> Path:
        path = self._config.manifest_path(target)
        if self._config.dry_run:
            self._console.dry(f"rename {target.manifest_name} -> {target.patched_manifest_name} in {path}")
            return path
        patch_manifest(target, path)
        self._console.info(f"Renamed package to {target.patched_manifest_name} in {path}")
        return path

    def _run_target(self, target: Target, stop: threading.Event | None = None) -> TargetOutcome:
        if stop is not None and stop.is_set():
            raise _Stopped(target.name)
        try:
            result = self.build(target)
            manifest_path = self.patch_manifest(target)
        except TargetpackError:
            if stop is not None:
                stop.set()
            raise
        return TargetOutcome(target=target, command_result=result, manifest_path=manifest_path)

    def run(self, targets: Sequence[Target] | None = None, *, clean_first: bool | None = None) -> RunResult:
        targets = list(self._config.targets if targets is None else targets)
        clean_first = self._config.clean if clean_first is None else clean_first

        if self._config.check_tool:
            self.preflight()
        if clean_first:
            self.clean(targets)

        if self._config.jobs > 1 and len(targets) > 1:
            return self._run_parallel(targets)

        outcome = RunResult()
        for target in targets:
            outcome.outcomes.append(self._run_target(target))
        return outcome

    def _run_parallel(self, targets: Sequence[Target]) -> RunResult:
        stop = threading.Event()
        futures: Dict[Future, int] = {}
        with ThreadPoolExecutor(max_workers=self._config.jobs) as executor:
            for index, target in enumerate(targets):
                futures[executor.submit(self._run_target, target, stop)] = index
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            if any(future.exception() is not None for future in done):
                stop.set()
                for future in pending:
                    future.cancel()
            wait(futures)

        failures: List[tuple[int, TargetpackError]] = []
        outcomes: List[tuple[int, TargetOutcome]] = []
        for future, index in futures.items():
            if future.cancelled():
                continue
            error = future.exception()
            if error is None:
                outcomes.append((index, future.result()))
            elif isinstance(error, _Stopped):
                continue
            elif isinstance(error, TargetpackError):
                failures.append((index, error))
            else:
                raise error

        if failures:
            failures.sort(key=lambda item: item[0])
            raise failures[0][1]
        outcomes.sort(key=lambda item: item[0])
        return RunResult(outcomes=[outcome for _, outcome in outcomes])
