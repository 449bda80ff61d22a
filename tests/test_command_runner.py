from __future__ import annotations

from pathlib import Path
import sys
import tempfile
import unittest

from targetpack.command_runner import CommandError, RecordingCommandRunner, SubprocessCommandRunner


class SubprocessCommandRunnerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = SubprocessCommandRunner()

    def test_captures_output(self) -> None:
        result = self.runner.run([sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"])
        self.assertEqual(result.returncode, 0)
        self.assertEqual(result.stdout.strip(), "out")
        self.assertEqual(result.stderr.strip(), "err")
        self.assertEqual(result.output, "out\nerr")

    def test_non_zero_exit_raises_with_result(self) -> None:
        with self.assertRaises(CommandError) as ctx:
            self.runner.run([sys.executable, "-c", "import sys; print('boom'); sys.exit(3)"])
        self.assertEqual(ctx.exception.result.returncode, 3)
        self.assertIn("boom", ctx.exception.result.stdout)
        self.assertIn("exit code 3", str(ctx.exception))

    def test_check_false_returns_failure(self) -> None:
        result = self.runner.run([sys.executable, "-c", "raise SystemExit(2)"], check=False)
        self.assertEqual(result.returncode, 2)

    def test_timeout_marks_result(self) -> None:
        with self.assertRaises(CommandError) as ctx:
            self.runner.run([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5)
        self.assertTrue(ctx.exception.result.timed_out)
        self.assertIsNone(ctx.exception.result.returncode)
        self.assertIn("timed out", str(ctx.exception))

    def test_environment_and_cwd(self) -> None:
        with tempfile.TemporaryDirectory() as temp:
            result = self.runner.run(
                [sys.executable, "-c", "import os; print(os.environ['TARGETPACK_TEST']); print(os.getcwd())"],
                cwd=Path(temp),
                env={"TARGETPACK_TEST": "value"},
            )
        lines = result.stdout.splitlines()
        self.assertEqual(lines[0], "value")
        self.assertEqual(Path(lines[1]).resolve(), Path(temp).resolve())


class RecordingCommandRunnerTests(unittest.TestCase):
    def test_records_and_formats_commands(self) -> None:
        runner = RecordingCommandRunner()
        runner.run(["wasm-pack", "build", "--out-name", "a b"], cwd=Path("/work"), note="build node", timeout=5)
        record = next(iter(runner.iter_commands()))
        self.assertEqual(record.command, ["wasm-pack", "build", "--out-name", "a b"])
        self.assertEqual(record.timeout, 5)
        lines = list(runner.iter_formatted())
        self.assertEqual(lines, ["[dry-run] build node (cwd=/work) wasm-pack build --out-name 'a b'"])


if __name__ == "__main__":
    unittest.main()
