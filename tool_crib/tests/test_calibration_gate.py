import sys
import unittest
from datetime import date
from pathlib import Path


APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from domain.errors import CalibrationBlocked, ValidationFailure
from domain.records import ToolRecord
from services.calibration_service import calibration_stats, due_soon, ensure_not_blocked, is_blocked
from services.timekeeping import normalize_ymd


def make_tool(tool_id, calibrate_due=None, status="good"):
    return ToolRecord(
        id=tool_id,
        equipment_name=f"Torque Wrench {tool_id}",
        tool_number=f"T-{tool_id}",
        calibrate_due=calibrate_due,
        status=status,
    )


class CalibrationGateTests(unittest.TestCase):
    def test_due_today_blocks(self):
        self.assertTrue(is_blocked(make_tool(1, "2024-01-01"), "2024-01-01"))

    def test_overdue_blocks_and_future_does_not(self):
        self.assertTrue(is_blocked(make_tool(1, "2023-12-31"), "2024-01-01"))
        self.assertFalse(is_blocked(make_tool(1, "2024-01-02"), "2024-01-01"))

    def test_missing_due_date_never_blocks(self):
        self.assertFalse(is_blocked(make_tool(1, None), "2024-01-01"))
        self.assertFalse(is_blocked(make_tool(1, ""), "2024-01-01"))

    def test_block_message_names_tool_and_date(self):
        with self.assertRaises(CalibrationBlocked) as ctx:
            ensure_not_blocked(make_tool(3, "2024-01-01"), "2024-02-01")
        self.assertEqual(str(ctx.exception), "Blocked: Torque Wrench 3 is due for calibration (2024-01-01).")
        self.assertEqual(ctx.exception.tool_name, "Torque Wrench 3")
        self.assertEqual(ctx.exception.calibrate_due, "2024-01-01")

    def test_ensure_not_blocked_allows_future_due(self):
        ensure_not_blocked(make_tool(3, "2030-01-01"), "2024-02-01")


class DueSoonTests(unittest.TestCase):
    def setUp(self):
        self.tools = [
            make_tool(1, "2024-05-20"),
            make_tool(2, "2024-04-30"),
            make_tool(3, None),
            make_tool(4, "2024-05-01"),
            make_tool(5, "2024-05-10"),
            make_tool(6, "2024-05-01"),
        ]

    def test_excludes_overdue_and_sorts_ascending(self):
        result = due_soon(self.tools, "2024-05-01")
        self.assertEqual([tool.id for tool in result], [4, 6, 5, 1])
        self.assertTrue(all(tool.calibrate_due >= "2024-05-01" for tool in result))

    def test_truncates_to_limit(self):
        self.assertEqual([tool.id for tool in due_soon(self.tools, "2024-05-01", 2)], [4, 6])
        self.assertEqual(due_soon(self.tools, "2024-05-01", 0), [])

    def test_gate_and_list_use_opposite_directions(self):
        today = "2024-05-01"
        listed = {tool.id for tool in due_soon(self.tools, today)}
        blocked = {tool.id for tool in self.tools if is_blocked(tool, today)}
        self.assertEqual(blocked, {2, 4, 6})
        self.assertEqual(listed & blocked, {4, 6})

    def test_stats_counts(self):
        tools = self.tools + [make_tool(7, None, status="damage")]
        stats = calibration_stats(tools, "2024-05-01")
        self.assertEqual(
            stats,
            {"totalTools": 7, "damagedTools": 1, "calibrationDueTools": 4, "blockedTools": 3},
        )


class NormalizeDateTests(unittest.TestCase):
    def test_accepts_padded_dates_and_date_objects(self):
        self.assertEqual(normalize_ymd("2024-01-05"), "2024-01-05")
        self.assertEqual(normalize_ymd(" 2024-01-05 "), "2024-01-05")
        self.assertEqual(normalize_ymd(date(2024, 1, 5)), "2024-01-05")

    def test_empty_values_become_none(self):
        self.assertIsNone(normalize_ymd(None))
        self.assertIsNone(normalize_ymd("  "))

    def test_rejects_unpadded_or_malformed(self):
        for raw in ("2024-1-5", "05/01/2024", "2024-02-30", "soon"):
            with self.assertRaises(ValidationFailure):
                normalize_ymd(raw, "calibrateDue")


if __name__ == "__main__":
    unittest.main()
