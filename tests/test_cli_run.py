from __future__ import annotations

from pathlib import Path
import io
import json
import os
import stat
import sys
import tempfile
import textwrap
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import patch

from targetpack import cli


FAKE_TOOL = textwrap.dedent(
    """\
    #!{python}
    import json
    import os
    import sys
    from pathlib import Path

    args = sys.argv[1:]
    out_dir = Path(args[args.index("--out-dir") + 1])
    out_name = args[args.index("--out-name") + 1]
    if out_dir.name == os.environ.get("FAKE_TOOL_FAIL"):
        print("error: could not compile `flux-lsp`", file=sys.stderr)
        sys.exit(101)
    name = "flux-lsp"
    if "--scope" in args:
        name = "@" + args[args.index("--scope") + 1] + "/" + name
    out_dir.mkdir(parents=True, exist_ok=True)
    manifest = {{"name": name, "version": "0.8.2", "main": out_name + ".js"}}
    (out_dir / "package.json").write_text(json.dumps(manifest, indent=2) + "\\n")
    """
)


@unittest.skipIf(os.name == "nt", "fake build tool relies on a shebang")
class RunCommandTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.workspace = Path(self.temp_dir.name).resolve()
        self.tool = self.workspace / "fake-wasm-pack"
        self.tool.write_text(FAKE_TOOL.format(python=sys.executable))
        self.tool.chmod(self.tool.stat().st_mode | stat.S_IXUSR)
        (self.workspace / "Cargo.toml").write_text('[package]\nname = "flux-lsp"\nversion = "0.8.2"\n')

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _main(self, *argv: str) -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = cli.main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()

    def _base_args(self) -> list[str]:
        return [
            "run",
            "--target=node",
            "--target=browser",
            "--clean=true",
            "--scope=influxdata",
            "--tool",
            str(self.tool),
            "--workspace",
            str(self.workspace),
        ]

    def _name(self, directory: str) -> str:
        return json.loads((self.workspace / directory / "package.json").read_text())["name"]

    def test_run_builds_and_renames_both_packages(self) -> None:
        code, stdout, stderr = self._main(*self._base_args())
        self.assertEqual(code, 0, stderr)
        self.assertEqual(self._name("pkg-node"), "@influxdata/flux-lsp-node")
        self.assertEqual(self._name("pkg-browser"), "@influxdata/flux-lsp-browser")
        self.assertIn("[INFO] Built 2 target(s): node, browser", stdout)

    def test_failing_target_reports_target_and_phase(self) -> None:
        with patch.dict(os.environ, {"FAKE_TOOL_FAIL": "pkg-node"}):
            code, _, stderr = self._main(*self._base_args())
        self.assertEqual(code, 1)
        self.assertIn("target 'node' failed during build", stderr)
        self.assertIn("could not compile", stderr)
        self.assertFalse((self.workspace / "pkg-browser").exists())

    def test_dry_run_prints_commands_only(self) -> None:
        code, stdout, _ = self._main(*self._base_args(), "--dry-run")
        self.assertEqual(code, 0)
        self.assertIn("[dry-run] build node", stdout)
        self.assertIn("--out-name flux-lsp-browser", stdout)
        self.assertFalse((self.workspace / "pkg-node").exists())

    def test_configuration_file_and_comma_separated_targets(self) -> None:
        config = self.workspace / "targetpack.toml"
        config.write_text(
            textwrap.dedent(
                f"""
                [run]
                scope = "influxdata"
                tool = "{self.tool}"

                [targets.node]
                output_dir = "dist/node"

                [targets.web]
                """
            )
        )
        code, _, stderr = self._main("--log", "none", "run", "--config", str(config), "--target", "web,node")
        self.assertEqual(code, 0, stderr)
        self.assertEqual(self._name("dist/node"), "@influxdata/flux-lsp-node")
        self.assertEqual(self._name("pkg-web"), "@influxdata/flux-lsp-web")

    def test_configuration_from_environment(self) -> None:
        config = self.workspace / "targetpack.json"
        config.write_text(json.dumps({"run": {"scope": "acme", "tool": str(self.tool)}, "targets": {"deno": {}}}))
        with patch.dict(os.environ, {"TARGETPACK_CONFIG": str(config)}):
            code, _, stderr = self._main("run")
        self.assertEqual(code, 0, stderr)
        self.assertEqual(self._name("pkg-deno"), "@acme/flux-lsp-deno")

    def test_configuration_errors_exit_with_one(self) -> None:
        code, _, stderr = self._main(*self._base_args(), "--target=esm")
        self.assertEqual(code, 1)
        self.assertIn("Unknown build mode 'esm'", stderr)

        code, _, stderr = self._main(*self._base_args(), "--clean=sometimes")
        self.assertEqual(code, 1)
        self.assertIn("--clean must be a boolean", stderr)

    def test_missing_tool_with_preflight(self) -> None:
        args = self._base_args()
        args[args.index("--tool") + 1] = "definitely-not-a-real-build-tool"
        code, _, stderr = self._main(*args, "--check-tool")
        self.assertEqual(code, 1)
        self.assertIn("preflight failed", stderr)


class ListCommandTests(unittest.TestCase):
    def test_list_shows_names_and_commands(self) -> None:
        with tempfile.TemporaryDirectory() as temp:
            workspace = Path(temp).resolve()
            stdout = io.StringIO()
            with redirect_stdout(stdout):
                code = cli.main(
                    [
                        "list",
                        "--target",
                        "node",
                        "--scope",
                        "influxdata",
                        "--package-name",
                        "flux-lsp",
                        "--workspace",
                        str(workspace),
                        "--profile",
                        "dev",
                    ]
                )
        output = stdout.getvalue()
        self.assertEqual(code, 0)
        self.assertIn("node: @influxdata/flux-lsp -> @influxdata/flux-lsp-node", output)
        self.assertIn("wasm-pack build --target nodejs", output)
        self.assertIn("--dev", output)


if __name__ == "__main__":
    unittest.main()
