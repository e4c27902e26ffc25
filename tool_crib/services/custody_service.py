from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Sequence

from domain.records import CribSnapshot, CustodyEntry, LogRecord, PairedTransaction


def get_borrowed_tools_for_employee(snapshot: CribSnapshot, employee_id: int) -> list[CustodyEntry]:
    """Tools the employee holds right now, derived from the log stream alone.

    A tool is held when the employee has more borrows than returns for it. Only
    the most recent borrow is reported, so a second outstanding borrow of the
    same tool stays hidden behind the first.
    """
    groups: dict[int, dict] = {}
    for log in snapshot.logs:
        if log.employee_id != employee_id:
            continue
        group = groups.setdefault(log.tool_id, {"borrows": 0, "returns": 0, "latest": None})
        if log.is_borrow:
            group["borrows"] += 1
            latest = group["latest"]
            if latest is None or (log.timestamp, log.id) > (latest.timestamp, latest.id):
                group["latest"] = log
        elif log.is_return:
            group["returns"] += 1

    live_tools = {tool.id: tool for tool in snapshot.live_tools()}
    result: list[CustodyEntry] = []
    for tool_id, group in groups.items():
        if group["borrows"] <= group["returns"] or group["latest"] is None:
            continue
        tool = live_tools.get(tool_id)
        if tool is None:
            continue
        result.append(CustodyEntry(tool=tool, borrow_log=group["latest"]))
    return result


def outstanding_balances(logs: Iterable[LogRecord]) -> dict[tuple[int, int], int]:
    balances: dict[tuple[int, int], int] = defaultdict(int)
    for log in logs:
        key = (log.employee_id, log.tool_id)
        if log.is_borrow:
            balances[key] += 1
        elif log.is_return:
            balances[key] -= 1
    return dict(balances)


def find_anomalous_pairs(logs: Iterable[LogRecord]) -> list[tuple[int, int]]:
    return sorted(key for key, balance in outstanding_balances(logs).items() if balance < 0)


def pair_logs(logs: Sequence[LogRecord]) -> list[PairedTransaction]:
    """Pair every borrow with the earliest return of the same tool by the same employee after it.

    Matching is independent per borrow: one return can close more than one
    borrow when borrows of the same tool are interleaved. Result is newest
    borrow first; equal borrow times keep input order.
    """
    returns_by_key: dict[tuple[int, int], list[LogRecord]] = defaultdict(list)
    for log in logs:
        if log.is_return:
            returns_by_key[(log.tool_id, log.employee_id)].append(log)

    pairs: list[PairedTransaction] = []
    for borrow in logs:
        if not borrow.is_borrow:
            continue
        candidates = [
            ret
            for ret in returns_by_key.get((borrow.tool_id, borrow.employee_id), [])
            if ret.timestamp > borrow.timestamp
        ]
        matched = min(candidates, key=lambda ret: ret.timestamp) if candidates else None
        pairs.append(
            PairedTransaction(
                borrow_id=borrow.id,
                return_id=matched.id if matched else None,
                employee_id=borrow.employee_id,
                employee_id_number=borrow.employee_id_number,
                tool_id=borrow.tool_id,
                tool_name=borrow.tool_name,
                tool_number=borrow.tool_number,
                borrow_time=borrow.timestamp,
                borrow_condition=borrow.condition,
                borrow_remarks=borrow.borrow_remarks or "",
                return_time=matched.timestamp if matched else None,
                return_condition=matched.condition if matched else None,
                return_remarks=(matched.return_remarks or "") if matched else "",
                verified_by=borrow.verified_by,
            )
        )

    return sorted(pairs, key=lambda pair: pair.borrow_time, reverse=True)


def matches_query(pair: PairedTransaction, query: str | None) -> bool:
    needle = (query or "").strip().lower()
    if not needle:
        return True
    haystack = " ".join(
        value
        for value in (
            pair.employee_id_number,
            pair.tool_name,
            pair.tool_number,
            pair.borrow_time,
            pair.return_time,
        )
        if value
    )
    return needle in haystack.lower()


def filter_paired_logs(pairs: Sequence[PairedTransaction], query: str | None) -> list[PairedTransaction]:
    if not (query or "").strip():
        return list(pairs)
    return [pair for pair in pairs if matches_query(pair, query)]


def serialize_pair(pair: PairedTransaction) -> dict:
    return {
        "borrowID": pair.borrow_id,
        "returnID": pair.return_id,
        "employeeID": pair.employee_id,
        "employeeIdNumber": pair.employee_id_number,
        "toolID": pair.tool_id,
        "toolName": pair.tool_name,
        "toolNumber": pair.tool_number,
        "borrowTime": pair.borrow_time,
        "borrowCondition": pair.borrow_condition,
        "borrowRemarks": pair.borrow_remarks,
        "returnTime": pair.return_time,
        "returnCondition": pair.return_condition,
        "returnRemarks": pair.return_remarks,
        "verifiedBy": pair.verified_by,
        "isOpen": pair.is_open,
    }


def serialize_custody_entry(entry: CustodyEntry) -> dict:
    return {
        "toolID": entry.tool.id,
        "equipmentName": entry.tool.equipment_name,
        "toolNumber": entry.tool.tool_number,
        "status": entry.tool.status,
        "calibrateDue": entry.tool.calibrate_due,
        "borrowLogID": entry.borrow_log.id,
        "borrowTime": entry.borrow_log.timestamp,
        "borrowCondition": entry.borrow_log.condition,
        "borrowRemarks": entry.borrow_log.borrow_remarks or "",
        "verifiedBy": entry.borrow_log.verified_by,
    }
