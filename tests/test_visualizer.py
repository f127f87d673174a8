from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
import io
import unittest
from unittest import mock

from bfmachine import ExecutionState, InvalidProgram, VisualizerSession
from bfmachine.errors import StepLimitExceeded, ValueOutOfRange
from bfmachine.visualizer import _format_code_window, _to_input_bytes, format_state, main, run_repl

PROGRAMS = Path(__file__).resolve().parent / "programs"


class VisualizerSessionTests(unittest.TestCase):
    def test_basic_stepping(self) -> None:
        session = VisualizerSession("+++.", input_template=[], tape_window=2, max_steps=100)
        initial = session.current_state()
        self.assertIsNone(initial.command)
        states = session.step_forward(2)
        self.assertEqual(len(states), 2)
        self.assertEqual(states[-1].step, 2)
        self.assertFalse(session.is_finished())

    def test_breakpoint(self) -> None:
        session = VisualizerSession("+++.", input_template=[], tape_window=2, max_steps=100)
        session.add_breakpoint(2)
        session.run_until_break()
        self.assertEqual(session.hit_breakpoint, 2)
        self.assertEqual(session.current_state().pc, 2)

    def test_restart(self) -> None:
        session = VisualizerSession("+.", input_template=[], tape_window=2, max_steps=100)
        session.step_forward(3)
        self.assertTrue(session.is_finished())
        session.restart()
        self.assertFalse(session.is_finished())
        self.assertEqual(session.current_state().step, 0)
        self.assertEqual(len(session.history), 1)

    def test_rejects_invalid_program(self) -> None:
        with self.assertRaises(InvalidProgram):
            VisualizerSession("[+", input_template=[])

    def test_comments_do_not_count_as_instructions(self) -> None:
        session = VisualizerSession("+ add one +", input_template=[])
        self.assertEqual(session.instructions, "++")
        self.assertEqual(session.current_state().code_length, 2)
        session.run_until_break()
        self.assertTrue(session.is_finished())
        self.assertEqual(session.current_state().pc, 2)

    def test_output_is_tracked_in_states(self) -> None:
        session = VisualizerSession("+" * 65 + ".", input_template=[])
        session.run_until_break()
        self.assertEqual(session.current_state().output, "A")

    def test_input_template_feeds_reads(self) -> None:
        session = VisualizerSession(",.,.", input_template=_to_input_bytes("h"))
        session.run_until_break()
        self.assertEqual(session.current_state().output, "h\x00")


class VisualizerSessionAdvancedTests(unittest.TestCase):
    def test_step_forward_zero_count_keeps_state(self) -> None:
        session = VisualizerSession("++", input_template=[], history_limit=5)
        initial_state = session.current_state()
        states = session.step_forward(0)
        self.assertEqual(states, [])
        self.assertIs(session.current_state(), initial_state)
        self.assertFalse(session.is_finished())
        self.assertIsNone(session.hit_breakpoint)

    def test_step_forward_stops_on_breakpoint(self) -> None:
        session = VisualizerSession("+++.>", input_template=[], max_steps=100)
        session.add_breakpoint(2)
        states = session.step_forward(10)
        self.assertTrue(states)
        self.assertEqual(session.hit_breakpoint, 2)
        self.assertEqual(states[-1].pc, 2)
        self.assertFalse(session.is_finished())

    def test_run_until_break_limit(self) -> None:
        session = VisualizerSession("+++++.", input_template=[], max_steps=100)
        session.add_breakpoint(5)
        states = session.run_until_break(limit=2)
        self.assertEqual(len(states), 2)
        self.assertIsNone(session.hit_breakpoint)
        self.assertEqual(session.current_state(), states[-1])
        self.assertFalse(session.is_finished())

    def test_run_until_break_hits_breakpoint(self) -> None:
        session = VisualizerSession("+++.>", input_template=[], max_steps=100)
        session.add_breakpoint(3)
        states = session.run_until_break()
        self.assertTrue(states)
        self.assertEqual(session.hit_breakpoint, 3)
        self.assertEqual(states[-1].pc, 3)
        self.assertFalse(session.is_finished())

    def test_run_until_break_propagates_step_limit(self) -> None:
        session = VisualizerSession("+[]", input_template=[], max_steps=2)
        with self.assertRaises(StepLimitExceeded):
            session.run_until_break()
        self.assertTrue(session.is_finished())

    def test_runtime_fault_finishes_session(self) -> None:
        session = VisualizerSession("-.", input_template=[], cell_max=300)
        with self.assertRaises(ValueOutOfRange):
            session.run_until_break()
        self.assertTrue(session.is_finished())
        self.assertEqual(session.step_forward(1), [])

    def test_history_limit_discards_old_entries(self) -> None:
        session = VisualizerSession("+++++.", input_template=[], history_limit=3, max_steps=100)
        session.step_forward(5)
        self.assertEqual(len(session.history), 3)
        self.assertGreater(session.history[0].step, 0)
        self.assertEqual(session.history[-1], session.current_state())

    def test_breakpoint_management_helpers(self) -> None:
        session = VisualizerSession("+++.", input_template=[])
        session.add_breakpoint(3)
        session.add_breakpoint(1)
        self.assertEqual(session.list_breakpoints(), [1, 3])
        self.assertTrue(session.remove_breakpoint(1))
        self.assertFalse(session.remove_breakpoint(99))
        session.clear_breakpoints()
        self.assertEqual(session.list_breakpoints(), [])

    def test_small_memory_wraps_pointer(self) -> None:
        session = VisualizerSession("<+", input_template=[], memory_size=4, tape_window=1)
        session.run_until_break()
        state = session.current_state()
        self.assertEqual(state.pointer, 3)
        self.assertEqual(state.tape_start, 2)
        self.assertEqual(state.tape, [0, 1])


class VisualizerUtilityTests(unittest.TestCase):
    def test_to_input_bytes(self) -> None:
        self.assertEqual(_to_input_bytes("Az0"), [65, 122, 48])

    def test_format_code_window_marks_end(self) -> None:
        self.assertEqual(_format_code_window("+", 5), "+[END]")

    def test_format_state_renders_core_sections(self) -> None:
        state = ExecutionState(
            step=3,
            pc=1,
            command="+",
            pointer=1,
            tape_start=0,
            tape=[1, 2, 3],
            output="A",
            code_length=3,
        )
        rendered = format_state(state, "++.")
        self.assertIn("step=3 pc=1/3 command='+' pointer=1", rendered)
        self.assertIn("output='A'", rendered)
        self.assertIn("[1:002]", rendered)
        self.assertIn("code=+[+].", rendered)

    def test_format_state_without_output(self) -> None:
        state = ExecutionState(
            step=0,
            pc=0,
            command=None,
            pointer=0,
            tape_start=0,
            tape=[0],
            output=None,
            code_length=1,
        )
        rendered = format_state(state, "+")
        self.assertIn("command='(init)'", rendered)
        self.assertNotIn("output=", rendered)


class VisualizerReplTests(unittest.TestCase):
    def run_commands(self, session: VisualizerSession, *commands) -> tuple:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with mock.patch("builtins.input", side_effect=list(commands)), redirect_stdout(
            stdout
        ), redirect_stderr(stderr):
            run_repl(session)
        return stdout.getvalue(), stderr.getvalue()

    def test_breakpoint_commands(self) -> None:
        session = VisualizerSession("+++.", input_template=[], tape_window=2)
        stdout, stderr = self.run_commands(
            session,
            "break 2",
            "breaks",
            "run",
            "history 1",
            "next",
            "state",
            "clear 2",
            "clear 9",
            "quit",
        )
        self.assertEqual(stderr, "")
        self.assertIn("ブレークポイント 2 を設定しました。", stdout)
        self.assertIn("ブレークポイント: 2", stdout)
        self.assertIn("ブレークポイント 2 に到達しました。", stdout)
        self.assertIn("step=2 pc=2/4", stdout)
        self.assertIn("step=3 pc=3/4", stdout)
        self.assertIn("ブレークポイント 2 を削除しました。", stdout)
        self.assertIn("ブレークポイント 9 は存在しません。", stdout)
        self.assertIsNone(session.hit_breakpoint)
        self.assertEqual(session.list_breakpoints(), [])

    def test_restart_help_and_unknown_commands(self) -> None:
        session = VisualizerSession("++", input_template=[])
        stdout, _ = self.run_commands(session, "next 2", "restart", "bogus", "help", "", "exit")
        self.assertIn("セッションを再開しました。", stdout)
        self.assertIn("不明なコマンドです。'help' を参照してください。", stdout)
        self.assertIn("利用可能なコマンド:", stdout)
        self.assertEqual(session.current_state().step, 0)

    def test_bad_number_is_reported(self) -> None:
        session = VisualizerSession("+", input_template=[])
        _, stderr = self.run_commands(session, "next abc", "break x", "quit")
        self.assertEqual(stderr.count("数値が正しくありません。"), 2)
        self.assertEqual(session.current_state().step, 0)

    def test_finished_program_messages(self) -> None:
        session = VisualizerSession("+", input_template=[])
        stdout, _ = self.run_commands(session, "run", "next", "run", EOFError())
        self.assertTrue(session.is_finished())
        self.assertIn("プログラムは終了しています。", stdout)
        self.assertIn("プログラムは終了しました。", stdout)

    def test_step_limit_is_reported(self) -> None:
        session = VisualizerSession("+[]", input_template=[], max_steps=3)
        _, stderr = self.run_commands(session, "run", "quit")
        self.assertIn("ステップ上限に達しました。", stderr)

    def test_runtime_fault_is_reported(self) -> None:
        session = VisualizerSession("-.", input_template=[], cell_max=300)
        _, stderr = self.run_commands(session, "run", "quit")
        self.assertIn("実行エラー:", stderr)
        self.assertIn("one byte", stderr)


class VisualizerMainTests(unittest.TestCase):
    def run_main(self, *argv: str, commands=("quit",)) -> tuple:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with mock.patch("builtins.input", side_effect=list(commands)), redirect_stdout(
            stdout
        ), redirect_stderr(stderr):
            code = main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()

    def test_missing_file(self) -> None:
        code, _, stderr = self.run_main(str(PROGRAMS / "missing.bf"))
        self.assertEqual(code, 1)
        self.assertIn("ファイルを開けません", stderr)

    def test_invalid_program(self) -> None:
        code, _, stderr = self.run_main(str(PROGRAMS / "unbalanced.bf"))
        self.assertEqual(code, 1)
        self.assertIn("プログラムを読み込めません", stderr)

    def test_invalid_memory_size(self) -> None:
        code, _, stderr = self.run_main(str(PROGRAMS / "echo.bf"), "--memory-size", "0")
        self.assertEqual(code, 1)
        self.assertIn("Invalid memory size", stderr)

    def test_cell_range_without_zero_is_rejected(self) -> None:
        code, _, stderr = self.run_main(
            str(PROGRAMS / "echo.bf"), "--cell-min", "5", "--cell-max", "9"
        )
        self.assertEqual(code, 1)
        self.assertIn("プログラムを読み込めません", stderr)

    def test_memory_options_reach_session(self) -> None:
        with mock.patch("bfmachine.visualizer.run_repl") as repl:
            code = main(
                [
                    str(PROGRAMS / "echo.bf"),
                    "--memory-size",
                    "8",
                    "--cell-min",
                    "-2",
                    "--cell-max",
                    "2",
                ]
            )
        self.assertEqual(code, 0)
        session = repl.call_args[0][0]
        self.assertEqual(session.memory_size, 8)
        self.assertEqual(session.cell_min, -2)
        self.assertEqual(session.cell_max, 2)
        self.assertEqual(session.machine.memory.size, 8)

    def test_runs_file_with_input(self) -> None:
        code, stdout, stderr = self.run_main(
            str(PROGRAMS / "echo.bf"), "--input", "Z", commands=("run", "quit")
        )
        self.assertEqual(code, 0)
        self.assertEqual(stderr, "")
        self.assertIn("output='Z'", stdout)


if __name__ == "__main__":
    unittest.main()
