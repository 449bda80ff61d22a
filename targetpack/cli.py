"""Command line interface for the targetpack tool."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable, List
import os
import sys

from .command_runner import CommandRunner, RecordingCommandRunner, SubprocessCommandRunner
from .config_loader import CONFIG_ENV_VAR, RunOverrides, load_run_config, parse_bool
from .console import Console
from .errors import ConfigError, TargetpackError
from .orchestrator import Orchestrator
from .targets import PROFILES, RunConfig


def _collect_targets(values: Iterable[str]) -> List[str]:
    targets: List[str] = []
    for value in values:
        if not value:
            continue
        for part in value.split(","):
            name = part.strip()
            if name and name not in targets:
                targets.append(name)
    return targets


def _emit_dry_run_output(runner: RecordingCommandRunner, *, workspace: Path) -> None:
    for line in runner.iter_formatted(workspace=workspace):
        print(line)


def _add_config_arguments(parser: ArgumentParser) -> None:
    parser.add_argument("--config", "-c", type=Path, help=f"Configuration file (default: ${CONFIG_ENV_VAR})")
    parser.add_argument("--target", action="append", default=[], help="Target name(s) to build (comma-separated)")
    parser.add_argument("--scope", help="Package scope, without the leading '@'")
    parser.add_argument("--package-name", help="Package name written by the build tool (default: crate name)")
    parser.add_argument("--workspace", type=Path, help="Directory the build tool runs in")
    parser.add_argument("--tool", help="Build tool executable (default: wasm-pack)")
    parser.add_argument("--profile", choices=PROFILES, help="Build profile passed to the build tool")
    parser.add_argument("--manifest", help="Manifest file name inside each output directory")


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="targetpack", description="Build one package per target and rename each manifest")
    parser.add_argument(
        "--log",
        "-l",
        choices=sorted(Console.LEVELS, key=Console.LEVELS.get),
        default=None,
        help="Set log level (default: info)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Clean, build and patch every target")
    _add_config_arguments(run_parser)
    run_parser.add_argument(
        "--clean",
        nargs="?",
        const="true",
        default=None,
        metavar="BOOL",
        help="Remove output directories before building (default: true)",
    )
    run_parser.add_argument("--jobs", "-j", type=int, help="Build this many targets in parallel (default: 1)")
    run_parser.add_argument("--timeout", type=float, help="Seconds before a build tool invocation is killed")
    run_parser.add_argument("--check-tool", action="store_true", default=None, help="Fail early if the build tool is missing")
    run_parser.add_argument("--dry-run", action="store_true", help="Print actions without executing them")
    run_parser.add_argument(
        "-X",
        dest="extra_args",
        action="append",
        default=[],
        metavar="ARG",
        help="Extra argument appended to every build tool invocation",
    )

    list_parser = subparsers.add_parser("list", help="Show resolved targets and their build commands")
    _add_config_arguments(list_parser)

    return parser.parse_args(list(argv))


def _make_console(args: Namespace, *, dry_run: bool = False) -> Console:
    level = args.log or ("debug" if args.verbose else "info")
    return Console(level=level, dry_run=dry_run)


def _load_config(args: Namespace, workspace: Path) -> RunConfig:
    clean = getattr(args, "clean", None)
    overrides = RunOverrides(
        targets=_collect_targets(args.target),
        clean=parse_bool(clean, field_name="--clean") if clean is not None else None,
        scope=args.scope,
        package_name=args.package_name,
        workspace=args.workspace,
        tool=args.tool,
        profile=args.profile,
        extra_args=list(getattr(args, "extra_args", [])),
        manifest=args.manifest,
        jobs=getattr(args, "jobs", None),
        timeout=getattr(args, "timeout", None),
        check_tool=getattr(args, "check_tool", None),
        dry_run=bool(getattr(args, "dry_run", False)),
    )
    config_path = args.config
    if config_path is None and os.environ.get(CONFIG_ENV_VAR):
        config_path = Path(os.environ[CONFIG_ENV_VAR])
    return load_run_config(config_path, overrides, cwd=workspace)


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    workspace = Path.cwd()

    if args.command == "run":
        return _handle_run(args, workspace)
    if args.command == "list":
        return _handle_list(args, workspace)
    raise ValueError(f"Unknown command: {args.command}")


def _handle_run(args: Namespace, workspace: Path) -> int:
    console = _make_console(args, dry_run=bool(args.dry_run))
    try:
        config = _load_config(args, workspace)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    runner: CommandRunner
    if config.dry_run:
        runner = RecordingCommandRunner()
    else:
        runner = SubprocessCommandRunner()

    orchestrator = Orchestrator(config, command_runner=runner, console=console)
    try:
        result = orchestrator.run()
    except TargetpackError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if isinstance(runner, RecordingCommandRunner):
        _emit_dry_run_output(runner, workspace=config.workspace)
    else:
        console.info(f"Built {len(result.outcomes)} target(s): {', '.join(result.target_names)}")
    return 0


def _handle_list(args: Namespace, workspace: Path) -> int:
    try:
        config = _load_config(args, workspace)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    orchestrator = Orchestrator(config, command_runner=RecordingCommandRunner(), console=_make_console(args))
    for target in config.targets:
        print(f"{target.name}: {target.manifest_name} -> {target.patched_manifest_name}")
        print(f"  output: {config.output_path(target)}")
        print(f"  command: {orchestrator.format_command(target)}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
