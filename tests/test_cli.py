# tests/test_cli.py
import os
import shutil
import tempfile
import unittest
from pathlib import Path

import yaml
from click.testing import CliRunner

from tagcoder.cli import cli

FIRST_TURN = (
    'Creating the module.\n'
    '<ns-file name="a.txt">one\ntwo\nthree</ns-file>\n'
    '<ns-summary>Created a.txt\nwith three lines</ns-summary>\n'
)

SECOND_TURN = (
    '<ns-patch name="a.txt">@@ @@\n one\n-two\n+TWO\n three\n</ns-patch>\n'
    '<ns-annotation file="a.txt" line="2" type="info" message="Shouting" />\n'
    '<ns-command>make test</ns-command>\n'
)


class TestTagCoderCLI(unittest.TestCase):

    def setUp(self):
        """Set up an isolated working directory before each test method."""
        self.test_dir = tempfile.mkdtemp()
        self.original_cwd = Path.cwd()
        os.chdir(self.test_dir)
        self.runner = CliRunner()

    def tearDown(self):
        os.chdir(self.original_cwd)
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def write(self, name, content):
        Path(name).write_text(content, encoding="utf-8")
        return name

    def apply_turns(self):
        self.write("first.txt", FIRST_TURN)
        self.write("second.txt", SECOND_TURN)
        result = self.runner.invoke(cli, ["apply", "first.txt", "--turn-id", "t1"])
        self.assertEqual(result.exit_code, 0, result.output)
        result = self.runner.invoke(cli, ["apply", "second.txt", "--turn-id", "t2"])
        self.assertEqual(result.exit_code, 0, result.output)

    # --- init / config ---
    def test_init_writes_config(self):
        result = self.runner.invoke(cli, ["init", "--namespace", "ai"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Generated", result.output)
        data = yaml.safe_load(Path(".tagcoder/config.yaml").read_text(encoding="utf-8"))
        self.assertEqual(data["protocol"]["namespace"], "ai")
        self.assertEqual(data["project_id"], Path(self.test_dir).resolve().name)

        result = self.runner.invoke(cli, ["config"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('"namespace": "ai"', result.output)

    def test_init_keeps_existing_config_when_declined(self):
        self.runner.invoke(cli, ["init"])
        Path(".tagcoder/config.yaml").write_text("project_id: mine\n", encoding="utf-8")
        result = self.runner.invoke(cli, ["init"], input="n\n")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Cancelled", result.output)
        self.assertEqual(Path(".tagcoder/config.yaml").read_text(encoding="utf-8"), "project_id: mine\n")

        result = self.runner.invoke(cli, ["init", "--force"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertNotEqual(Path(".tagcoder/config.yaml").read_text(encoding="utf-8"), "project_id: mine\n")

    def test_invalid_config_aborts(self):
        Path(".tagcoder").mkdir()
        self.write(".tagcoder/config.yaml", "stream:\n  chunk_size: 0\n")
        result = self.runner.invoke(cli, ["history"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("chunk_size", result.output)

    def test_config_option_and_defaults(self):
        result = self.runner.invoke(cli, ["config"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("defaults", result.output)

        self.write("custom.yaml", "project_id: custom\n")
        result = self.runner.invoke(cli, ["--config", "custom.yaml", "config"])
        self.assertIn('"project_id": "custom"', result.output)

    # --- apply ---
    def test_apply_commits_turn(self):
        self.write("first.txt", FIRST_TURN)
        result = self.runner.invoke(cli, ["apply", "first.txt", "--turn-id", "t1", "--chunk-size", "3"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Committed turn t1", result.output)
        self.assertIn("Created a.txt", result.output)
        self.assertTrue(Path(".tagcoder/store/projects/default/turns/t1.json").exists())

    def test_apply_reads_stdin(self):
        result = self.runner.invoke(cli, ["--project", "piped", "apply", "-", "--turn-id", "t1"], input=FIRST_TURN)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue(Path(".tagcoder/store/projects/piped/current.json").exists())

    def test_apply_dry_run_and_write(self):
        self.write("first.txt", FIRST_TURN)
        result = self.runner.invoke(cli, ["apply", "first.txt", "--dry-run", "--write", "out"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Dry run", result.output)
        self.assertEqual(Path("out/a.txt").read_text(encoding="utf-8"), "one\ntwo\nthree")

        result = self.runner.invoke(cli, ["history"])
        self.assertIn("No turns recorded", result.output)

    def test_apply_reports_failed_patch(self):
        self.write("bad.txt", '<ns-patch name="ghost.ts">@@ @@\n-a\n+b\n</ns-patch>')
        result = self.runner.invoke(cli, ["apply", "bad.txt"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("ghost.ts was not applied", result.output)
        self.assertIn("nothing committed", result.output)

    def test_apply_shows_side_effects(self):
        self.apply_turns()
        self.write("third.txt", '<ns-dependency name="rich" version="13.7.0" runtime="python" />'
                                '<ns-file name="b.py">x = 1</ns-file>')
        result = self.runner.invoke(cli, ["apply", "third.txt"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("pip install rich==13.7.0", result.output)

    def test_apply_prints_bracketed_model_text_literally(self):
        self.write("odd.txt", '<ns-file name="x[1].md">x</ns-file>'
                              '<ns-command>echo [/bold]</ns-command>'
                              '<ns-summary>[/oops] done</ns-summary>')
        result = self.runner.invoke(cli, ["apply", "odd.txt"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("echo [/bold]", result.output)
        self.assertIn("[/oops] done", result.output)

    def test_apply_commits_turn_with_bracketed_plan_task(self):
        self.write("plan.txt", '<ns-plan step="1/2" task="fix a[/i] index" />'
                               '<ns-file name="a.py">x</ns-file>')
        result = self.runner.invoke(cli, ["apply", "plan.txt", "--turn-id", "t1"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Plan 1/2: fix a[/i] index", result.output)
        self.assertIn("Committed turn t1", result.output)

        result = self.runner.invoke(cli, ["history"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("t1", result.output)

    def test_invalid_namespace_in_config_aborts(self):
        Path(".tagcoder").mkdir()
        self.write(".tagcoder/config.yaml", "protocol:\n  namespace: Bad\n")
        self.write("first.txt", FIRST_TURN)
        result = self.runner.invoke(cli, ["apply", "first.txt"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("protocol.namespace", result.output)
        self.assertNotIn("Cannot load files", result.output)

    def test_init_rejects_invalid_namespace(self):
        result = self.runner.invoke(cli, ["init", "--namespace", "Bad"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Invalid namespace", result.output)
        self.assertFalse(Path(".tagcoder/config.yaml").exists())

    def test_config_source_printed_literally(self):
        self.write("cfg[bold].yaml", "project_id: custom\n")
        result = self.runner.invoke(cli, ["--config", "cfg[bold].yaml", "config"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("cfg[bold].yaml", result.output)

    # --- history / show / diff ---
    def test_history_lists_turns(self):
        self.apply_turns()
        result = self.runner.invoke(cli, ["history"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("t1", result.output)
        self.assertIn("t2", result.output)
        self.assertLess(result.output.index("t2"), result.output.index("t1"))

    def test_show_file_at_turn(self):
        self.apply_turns()
        result = self.runner.invoke(cli, ["show", "t2", "a.txt"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("TWO", result.output)

        result = self.runner.invoke(cli, ["show", "t2", "a.txt", "--before"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("two", result.output)
        self.assertNotIn("TWO", result.output)

    def test_show_missing_file_before_first_turn(self):
        self.apply_turns()
        result = self.runner.invoke(cli, ["show", "t1", "a.txt", "--before"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("does not exist", result.output)

    def test_show_unknown_turn(self):
        self.apply_turns()
        result = self.runner.invoke(cli, ["show", "t9"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("not found", result.output)

    def test_history_with_corrupt_store(self):
        self.apply_turns()
        self.write(".tagcoder/store/projects/default/current.json", "{")
        result = self.runner.invoke(cli, ["history"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Cannot read history", result.output)

    def test_history_flags_unreadable_turn(self):
        self.apply_turns()
        self.write(".tagcoder/store/projects/default/turns/t2.json", "{")
        result = self.runner.invoke(cli, ["history"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("reconstruction", result.output)

    def test_diff_across_turn(self):
        self.apply_turns()
        result = self.runner.invoke(cli, ["diff", "t2", "a.txt"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("two", result.output)
        self.assertIn("TWO", result.output)

    def test_diff_prints_bracketed_lines_literally(self):
        self.write("first.txt", '<ns-file name="a.py">x = y[/i]</ns-file>')
        self.write("second.txt", '<ns-file name="a.py">x = z[/i]\nq = [bold]</ns-file>')
        self.runner.invoke(cli, ["apply", "first.txt", "--turn-id", "t1"])
        self.runner.invoke(cli, ["apply", "second.txt", "--turn-id", "t2"])
        result = self.runner.invoke(cli, ["diff", "t2", "a.py"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("x = y[/i]", result.output)
        self.assertIn("x = z[/i]", result.output)
        self.assertIn("q = [bold]", result.output)

    def test_projects(self):
        self.apply_turns()
        result = self.runner.invoke(cli, ["projects"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("* default", result.output)

    # --- prompt / patch ---
    def test_prompt_lists_current_files(self):
        self.apply_turns()
        result = self.runner.invoke(cli, ["prompt"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("<ns-file", result.output)
        self.assertIn("- a.txt (plaintext)", result.output)

    def test_patch_to_stdout(self):
        self.write("target.txt", "line1\nline2\nline3")
        self.write("change.diff", "@@ -7,3 +7,3 @@\n line1\n-line2\n+lineTwo\n line3")
        result = self.runner.invoke(cli, ["patch", "target.txt", "change.diff"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output, "line1\nlineTwo\nline3\n")

    def test_patch_in_place_with_skipped_hunk(self):
        self.write("target.txt", "a\nb\n")
        self.write("change.diff", "@@ @@\n-zzz\n+yyy\n@@ @@\n-b\n+B\n")
        result = self.runner.invoke(cli, ["patch", "target.txt", "change.diff", "--in-place"])
        self.assertEqual(result.exit_code, 1)
        self.assertEqual(Path("target.txt").read_text(encoding="utf-8"), "a\nB\n")
        self.assertIn("1 skipped", result.output)

    def test_version(self):
        result = self.runner.invoke(cli, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("0.1.0", result.output)


if __name__ == "__main__":
    unittest.main()
