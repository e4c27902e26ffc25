import random
import sys
import unittest
from pathlib import Path


APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from domain.records import CribSnapshot, Deleted, LogRecord, ToolRecord
from services.custody_service import (
    filter_paired_logs,
    find_anomalous_pairs,
    get_borrowed_tools_for_employee,
    matches_query,
    outstanding_balances,
    pair_logs,
)


def make_log(log_id, action, timestamp, employee_id=1, tool_id=10, condition="good", remarks=None):
    return LogRecord(
        id=log_id,
        action=action,
        employee_id=employee_id,
        employee_id_number=f"emp-{employee_id}",
        tool_id=tool_id,
        tool_name=f"Caliper {tool_id}",
        tool_number=f"T-{tool_id}",
        timestamp=timestamp,
        condition=condition,
        verified_by="Desk",
        borrow_remarks=remarks if action == "borrow" else None,
        return_remarks=remarks if action == "return" else None,
    )


def make_tool(tool_id, **kwargs):
    return ToolRecord(id=tool_id, equipment_name=f"Caliper {tool_id}", tool_number=f"T-{tool_id}", **kwargs)


class CustodyReconcilerTests(unittest.TestCase):
    def test_reborrow_after_return_is_held_with_latest_borrow(self):
        logs = (
            make_log(1, "borrow", "2024-03-01 10:00:00"),
            make_log(2, "return", "2024-03-01 11:00:00"),
            make_log(3, "borrow", "2024-03-01 12:00:00"),
        )
        snapshot = CribSnapshot(tools=(make_tool(10),), logs=logs)

        entries = get_borrowed_tools_for_employee(snapshot, 1)

        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].tool.id, 10)
        self.assertEqual(entries[0].borrow_log.id, 3)
        self.assertEqual(entries[0].borrow_log.timestamp, "2024-03-01 12:00:00")

    def test_fully_returned_tool_is_not_held(self):
        logs = (
            make_log(1, "borrow", "2024-03-01 10:00:00"),
            make_log(2, "return", "2024-03-01 11:00:00"),
        )
        snapshot = CribSnapshot(tools=(make_tool(10),), logs=logs)
        self.assertEqual(get_borrowed_tools_for_employee(snapshot, 1), [])

    def test_two_open_borrows_surface_only_the_latest(self):
        logs = (
            make_log(1, "borrow", "2024-03-01 12:00:00"),
            make_log(2, "borrow", "2024-03-01 08:00:00"),
        )
        snapshot = CribSnapshot(tools=(make_tool(10),), logs=logs)

        entries = get_borrowed_tools_for_employee(snapshot, 1)

        self.assertEqual([entry.borrow_log.id for entry in entries], [1])

    def test_equal_borrow_times_pick_highest_log_id(self):
        logs = (
            make_log(7, "borrow", "2024-03-01 12:00:00"),
            make_log(4, "borrow", "2024-03-01 12:00:00"),
        )
        snapshot = CribSnapshot(tools=(make_tool(10),), logs=logs)
        self.assertEqual(get_borrowed_tools_for_employee(snapshot, 1)[0].borrow_log.id, 7)

    def test_deleted_and_unknown_tools_are_dropped(self):
        logs = (
            make_log(1, "borrow", "2024-03-01 10:00:00", tool_id=10),
            make_log(2, "borrow", "2024-03-01 10:05:00", tool_id=11),
            make_log(3, "borrow", "2024-03-01 10:10:00", tool_id=12),
        )
        tools = (
            make_tool(10),
            make_tool(11, lifecycle=Deleted(at="2024-03-02 08:00:00")),
        )
        snapshot = CribSnapshot(tools=tools, logs=logs)

        entries = get_borrowed_tools_for_employee(snapshot, 1)

        self.assertEqual([entry.tool.id for entry in entries], [10])

    def test_other_employees_logs_do_not_count(self):
        logs = (
            make_log(1, "borrow", "2024-03-01 10:00:00", employee_id=1),
            make_log(2, "return", "2024-03-01 11:00:00", employee_id=2),
        )
        snapshot = CribSnapshot(tools=(make_tool(10),), logs=logs)

        self.assertEqual(len(get_borrowed_tools_for_employee(snapshot, 1)), 1)
        self.assertEqual(get_borrowed_tools_for_employee(snapshot, 2), [])

    def test_balances_never_negative_for_well_formed_streams(self):
        rng = random.Random(1234)
        logs = []
        held: dict[tuple[int, int], int] = {}
        minute = 0
        for log_id in range(1, 400):
            minute += 1
            key = (rng.randint(1, 4), rng.randint(10, 14))
            timestamp = f"2024-04-{1 + minute // 1440:02d} {(minute // 60) % 24:02d}:{minute % 60:02d}:00"
            if held.get(key, 0) > 0 and rng.random() < 0.5:
                action = "return"
                held[key] -= 1
            else:
                action = "borrow"
                held[key] = held.get(key, 0) + 1
            logs.append(make_log(log_id, action, timestamp, employee_id=key[0], tool_id=key[1]))

        balances = outstanding_balances(logs)

        self.assertTrue(all(balance >= 0 for balance in balances.values()))
        self.assertEqual(balances, {key: count for key, count in held.items() if key in balances})
        self.assertEqual(find_anomalous_pairs(logs), [])

    def test_return_without_borrow_is_reported_as_anomaly(self):
        logs = [make_log(1, "return", "2024-03-01 10:00:00", employee_id=3, tool_id=12)]
        self.assertEqual(find_anomalous_pairs(logs), [(3, 12)])


class LogPairingTests(unittest.TestCase):
    def test_borrow_pairs_with_earliest_later_return(self):
        logs = [
            make_log(1, "borrow", "2024-03-01 09:00:00"),
            make_log(2, "return", "2024-03-01 10:30:00"),
            make_log(3, "return", "2024-03-01 10:00:00", condition="damaged", remarks="cracked"),
        ]

        pairs = pair_logs(logs)

        self.assertEqual(len(pairs), 1)
        self.assertEqual(pairs[0].return_id, 3)
        self.assertEqual(pairs[0].return_time, "2024-03-01 10:00:00")
        self.assertEqual(pairs[0].return_condition, "damaged")
        self.assertEqual(pairs[0].return_remarks, "cracked")

    def test_return_at_same_second_does_not_match(self):
        logs = [
            make_log(1, "borrow", "2024-03-01 09:00:00"),
            make_log(2, "return", "2024-03-01 09:00:00"),
        ]
        pair = pair_logs(logs)[0]
        self.assertIsNone(pair.return_id)
        self.assertIsNone(pair.return_time)
        self.assertEqual(pair.return_remarks, "")
        self.assertTrue(pair.is_open)

    def test_returns_for_other_tool_or_employee_are_ignored(self):
        logs = [
            make_log(1, "borrow", "2024-03-01 09:00:00", employee_id=1, tool_id=10),
            make_log(2, "return", "2024-03-01 10:00:00", employee_id=2, tool_id=10),
            make_log(3, "return", "2024-03-01 10:00:00", employee_id=1, tool_id=11),
        ]
        self.assertIsNone(pair_logs(logs)[0].return_id)

    def test_one_return_can_close_several_borrows(self):
        logs = [
            make_log(1, "borrow", "2024-03-01 09:00:00"),
            make_log(2, "borrow", "2024-03-01 09:30:00"),
            make_log(3, "return", "2024-03-01 10:00:00"),
        ]

        pairs = pair_logs(logs)

        self.assertEqual([pair.borrow_id for pair in pairs], [2, 1])
        self.assertEqual([pair.return_id for pair in pairs], [3, 3])

    def test_sorted_newest_first_and_ties_keep_input_order(self):
        logs = [
            make_log(1, "borrow", "2024-03-01 09:00:00", tool_id=10),
            make_log(2, "borrow", "2024-03-02 09:00:00", tool_id=11),
            make_log(3, "borrow", "2024-03-01 09:00:00", tool_id=12),
            make_log(4, "borrow", "2024-03-03 09:00:00", tool_id=13),
        ]
        self.assertEqual([pair.borrow_id for pair in pair_logs(logs)], [4, 2, 1, 3])

    def test_pairing_is_idempotent(self):
        logs = (
            make_log(1, "borrow", "2024-03-01 09:00:00"),
            make_log(2, "return", "2024-03-01 10:00:00"),
            make_log(3, "borrow", "2024-03-01 11:00:00"),
            make_log(4, "borrow", "2024-03-01 11:00:00", employee_id=2),
        )
        self.assertEqual(pair_logs(logs), pair_logs(logs))

    def test_pair_carries_borrow_fields(self):
        logs = [make_log(5, "borrow", "2024-03-01 09:00:00", condition="for_calibration", remarks="for job 7")]
        pair = pair_logs(logs)[0]
        self.assertEqual(pair.employee_id_number, "emp-1")
        self.assertEqual(pair.tool_name, "Caliper 10")
        self.assertEqual(pair.tool_number, "T-10")
        self.assertEqual(pair.borrow_condition, "for_calibration")
        self.assertEqual(pair.borrow_remarks, "for job 7")
        self.assertEqual(pair.verified_by, "Desk")


class SearchFilterTests(unittest.TestCase):
    def setUp(self):
        self.pairs = pair_logs(
            [
                make_log(1, "borrow", "2024-03-01 09:00:00", employee_id=1, tool_id=10),
                make_log(2, "return", "2024-03-05 16:45:00", employee_id=1, tool_id=10),
                make_log(3, "borrow", "2024-03-02 09:00:00", employee_id=2, tool_id=11),
            ]
        )

    def test_empty_query_returns_everything_in_order(self):
        self.assertEqual(filter_paired_logs(self.pairs, ""), self.pairs)
        self.assertEqual(filter_paired_logs(self.pairs, "   "), self.pairs)
        self.assertEqual(filter_paired_logs(self.pairs, None), self.pairs)

    def test_query_is_case_insensitive(self):
        result = filter_paired_logs(self.pairs, "  CALIPER 11 ")
        self.assertEqual([pair.borrow_id for pair in result], [3])

    def test_query_matches_return_time(self):
        result = filter_paired_logs(self.pairs, "2024-03-05 16:45")
        self.assertEqual([pair.borrow_id for pair in result], [1])

    def test_query_matches_employee_and_tool_number(self):
        self.assertTrue(matches_query(self.pairs[0], "emp-2"))
        self.assertTrue(matches_query(self.pairs[1], "t-10"))
        self.assertFalse(matches_query(self.pairs[0], "t-10"))


if __name__ == "__main__":
    unittest.main()
