import logging
import os

from dotenv import load_dotenv

load_dotenv()

from fastapi import Depends, FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from db.deps import get_crib_db
from db.session import init_schema
from domain.errors import CalibrationBlocked, CribError, DuplicateRecord, NotFound
from models import crib_models  # noqa: F401  registers tables on Base.metadata
from schemas.employees import EmployeeCreate, LoginRequest, SignupRequest
from schemas.logs import BorrowRequest, ReturnRequest
from schemas.tools import CalibrateDueUpdate, ToolCreate
from services.calibration_service import calibration_stats, due_soon
from services.csv_service import export_pairs_csv, import_tools_csv
from services.custody_service import (
    filter_paired_logs,
    get_borrowed_tools_for_employee,
    pair_logs,
    serialize_custody_entry,
    serialize_pair,
)
from services.employee_service import (
    create_employee,
    find_live_employee_by_id_number,
    list_live_employees,
    serialize_employee,
    soft_delete_employee,
)
from services.log_service import list_logs, serialize_log, submit_borrow, submit_return
from services.snapshot_service import load_snapshot
from services.timekeeping import normalize_ymd, today_ymd
from services.tool_service import (
    create_tool,
    filter_tools,
    list_live_tools,
    serialize_tool,
    serialize_tool_record,
    soft_delete_tool,
    toggle_damage,
    update_calibrate_due,
)
from services.user_access_service import create_session, get_session, remove_session, verify_password

app = FastAPI(title="Tool Crib")


def _parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in str(raw).split(",") if item.strip()]


def _env_flag(name: str, default: str) -> bool:
    return str(os.environ.get(name, default)).strip().lower() in {"1", "true", "yes", "on"}


_CORS_ALLOW_ORIGINS = _parse_csv_env(
    "CORS_ALLOW_ORIGINS",
    "http://127.0.0.1,http://localhost,http://127.0.0.1:5001,http://localhost:5001",
)
_CORS_ALLOW_CREDENTIALS = _env_flag("CORS_ALLOW_CREDENTIALS", "true")
if "*" in _CORS_ALLOW_ORIGINS:
    # Browsers reject wildcard origins with credentials.
    _CORS_ALLOW_CREDENTIALS = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ALLOW_ORIGINS,
    allow_credentials=_CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"]
)
app.add_middleware(
    SessionMiddleware,
    secret_key=(os.environ.get("SESSION_SIGNING_SECRET") or "").strip(),
    session_cookie="tool_crib_session",
    same_site="lax",
    https_only=False,
)

DUE_SOON_LIMIT = int(os.environ.get("DUE_SOON_LIMIT") or "5")
DASHBOARD_LOG_LIMIT = int(os.environ.get("DASHBOARD_LOG_LIMIT") or "50")
DEFAULT_VERIFIER = "User"
AUTH_LOGGER = logging.getLogger("tool_crib.auth")

if _env_flag("TOOL_CRIB_CREATE_SCHEMA", "true"):
    init_schema()


def _http_error(exc: CribError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, DuplicateRecord):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, CalibrationBlocked):
        return HTTPException(
            status_code=400,
            detail={"message": str(exc), "toolName": exc.tool_name, "calibrateDue": exc.calibrate_due},
        )
    return HTTPException(status_code=400, detail=str(exc))


def _get_active_session(request: Request, session_token: str | None) -> dict | None:
    session_from_cookie = request.session.get("user")
    if isinstance(session_from_cookie, dict):
        return dict(session_from_cookie)
    session_from_token = get_session(session_token)
    if session_from_token:
        request.session["user"] = dict(session_from_token)
        return dict(session_from_token)
    return None


def require_session(
    request: Request,
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
) -> dict:
    session = _get_active_session(request, x_session_token)
    if not session:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return session


def _verifier_name(session: dict) -> str:
    return str(session.get("name") or "").strip() or DEFAULT_VERIFIER


def _resolve_today(raw_today: str | None) -> str:
    try:
        return normalize_ymd(raw_today, "today") or today_ymd()
    except CribError as exc:
        raise _http_error(exc) from exc


def _start_session(request: Request, employee) -> dict:
    session_payload = {
        "employeeID": employee.EmployeeID,
        "name": employee.Name,
        "idNumber": employee.IDNumber,
    }
    token = create_session(session_payload)
    request.session["user"] = dict(session_payload)
    return {"sessionToken": token, "user": session_payload}


@app.get("/healthz")
def healthcheck():
    return {"status": "ok"}


@app.get("/api/healthz")
def healthcheck_api(db: Session = Depends(get_crib_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"db_unavailable: {exc}") from exc


@app.post("/api/auth/signup")
def auth_signup(payload: SignupRequest, request: Request, db: Session = Depends(get_crib_db)):
    try:
        employee = create_employee(db, payload.name, payload.idNumber, payload.password)
    except CribError as exc:
        AUTH_LOGGER.warning("Signup rejected id_number=%s reason=%s", payload.idNumber, exc)
        raise _http_error(exc) from exc
    AUTH_LOGGER.info("Signup success employee_id=%s", employee.EmployeeID)
    return _start_session(request, employee)


@app.post("/api/auth/login")
def auth_login(payload: dict, request: Request, db: Session = Depends(get_crib_db)):
    try:
        parsed = LoginRequest.model_validate(payload)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid login request.")

    id_number = (parsed.idNumber or "").strip()
    if not id_number:
        raise HTTPException(status_code=400, detail="Invalid login request.")

    employee = find_live_employee_by_id_number(db, id_number)
    if not employee or not verify_password(employee.PasswordHash, employee.PasswordSalt, parsed.password):
        AUTH_LOGGER.warning("Login failed id_number=%s", id_number)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    AUTH_LOGGER.info("Login success employee_id=%s", employee.EmployeeID)
    return _start_session(request, employee)


@app.post("/api/auth/logout")
def auth_logout(request: Request, x_session_token: str | None = Header(None, alias="X-Session-Token")):
    request.session.clear()
    remove_session(x_session_token)
    return {"ok": True}


@app.get("/api/auth/me")
def auth_me(session: dict = Depends(require_session)):
    return {"user": session}


@app.get("/api/tools")
def get_tools(
    mode: str = Query("all"),
    q: str = Query(""),
    today: str | None = Query(None),
    db: Session = Depends(get_crib_db),
    session: dict = Depends(require_session),
):
    try:
        tools = filter_tools(list_live_tools(db), mode, q, _resolve_today(today))
    except CribError as exc:
        raise _http_error(exc) from exc
    return [serialize_tool(tool) for tool in tools]


@app.get("/api/tools/calibration-due")
def get_calibration_due(
    limit: int = Query(DUE_SOON_LIMIT, ge=1, le=500),
    today: str | None = Query(None),
    db: Session = Depends(get_crib_db),
    session: dict = Depends(require_session),
):
    snapshot = load_snapshot(db)
    return [serialize_tool_record(tool) for tool in due_soon(snapshot.live_tools(), _resolve_today(today), limit)]


@app.post("/api/tools")
def add_tool(payload: ToolCreate, db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    try:
        tool = create_tool(db, payload.model_dump(exclude_unset=True))
    except CribError as exc:
        raise _http_error(exc) from exc
    return serialize_tool(tool)


@app.post("/api/tools/import")
def import_tools(
    csv_file: UploadFile | None = File(None),
    db: Session = Depends(get_crib_db),
    session: dict = Depends(require_session),
):
    if csv_file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    try:
        result = import_tools_csv(db, csv_file.file.read())
    except CribError as exc:
        raise _http_error(exc) from exc
    if result["imported"] == 0:
        raise HTTPException(status_code=400, detail={"message": "No tools were imported", "errors": result["errors"]})
    result["message"] = f"Successfully imported {result['imported']} tools"
    return result


@app.put("/api/tools/{tool_id}/calibrate-due")
def set_calibrate_due(
    tool_id: int,
    payload: CalibrateDueUpdate,
    db: Session = Depends(get_crib_db),
    session: dict = Depends(require_session),
):
    try:
        tool = update_calibrate_due(db, tool_id, payload.calibrateDue)
    except CribError as exc:
        raise _http_error(exc) from exc
    return serialize_tool(tool)


@app.post("/api/tools/{tool_id}/toggle-damage")
def toggle_tool_damage(tool_id: int, db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    try:
        tool = toggle_damage(db, tool_id)
    except CribError as exc:
        raise _http_error(exc) from exc
    return serialize_tool(tool)


@app.delete("/api/tools/{tool_id}")
def delete_tool(tool_id: int, db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    try:
        soft_delete_tool(db, tool_id)
    except CribError as exc:
        raise _http_error(exc) from exc
    return {"message": "Tool deleted"}


@app.get("/api/employees")
def get_employees(q: str = Query(""), db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    return [serialize_employee(employee) for employee in list_live_employees(db, q)]


@app.post("/api/employees")
def add_employee(payload: EmployeeCreate, db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    try:
        employee = create_employee(db, payload.name, payload.idNumber, payload.password)
    except CribError as exc:
        raise _http_error(exc) from exc
    return serialize_employee(employee)


@app.delete("/api/employees/{employee_id}")
def delete_employee(employee_id: int, db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    try:
        soft_delete_employee(db, employee_id)
    except CribError as exc:
        raise _http_error(exc) from exc
    return {"message": "Employee deleted"}


@app.get("/api/employees/{id_number}/borrowed")
def get_borrowed_tools(id_number: str, db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    employee = find_live_employee_by_id_number(db, id_number)
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found.")
    snapshot = load_snapshot(db)
    entries = get_borrowed_tools_for_employee(snapshot, employee.EmployeeID)
    return {
        "employee": serialize_employee(employee),
        "borrowedTools": [serialize_custody_entry(entry) for entry in entries],
    }


@app.get("/api/logs")
def get_logs(db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    return [serialize_log(entry) for entry in list_logs(db)]


@app.post("/api/logs/borrow")
def borrow_tool(payload: BorrowRequest, db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    try:
        entry = submit_borrow(
            db,
            tool_number=payload.toolNumber,
            employee_id_number=payload.employeeIdNumber,
            condition=payload.condition,
            remarks=payload.remarks,
            verified_by=_verifier_name(session),
        )
    except CribError as exc:
        raise _http_error(exc) from exc
    return {
        "message": f"Logged: {entry.EmployeeIDNumber} borrowed {entry.ToolName}",
        "log": serialize_log(entry),
    }


@app.post("/api/logs/return")
def return_tool(payload: ReturnRequest, db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    try:
        entry = submit_return(
            db,
            employee_id_number=payload.employeeIdNumber,
            tool_id=payload.toolID,
            condition=payload.condition,
            remarks=payload.remarks,
            verified_by=_verifier_name(session),
        )
    except CribError as exc:
        raise _http_error(exc) from exc
    return {
        "message": f"Logged: {entry.EmployeeIDNumber} returned {entry.ToolName}",
        "log": serialize_log(entry),
    }


@app.get("/api/dashboard")
def get_dashboard(
    q: str = Query(""),
    today: str | None = Query(None),
    db: Session = Depends(get_crib_db),
    session: dict = Depends(require_session),
):
    current_day = _resolve_today(today)
    snapshot = load_snapshot(db)
    live_tools = snapshot.live_tools()
    recent = filter_paired_logs(pair_logs(snapshot.logs), q)[:DASHBOARD_LOG_LIMIT]
    return {
        "today": current_day,
        "stats": calibration_stats(live_tools, current_day),
        "recentLogs": [serialize_pair(pair) for pair in recent],
        "calibrationDue": [serialize_tool_record(tool) for tool in due_soon(live_tools, current_day, DUE_SOON_LIMIT)],
    }


@app.get("/api/borrowers")
def get_borrowers(q: str = Query(""), db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    snapshot = load_snapshot(db)
    return [serialize_pair(pair) for pair in filter_paired_logs(pair_logs(snapshot.logs), q)]


@app.get("/api/reports")
def get_reports(q: str = Query(""), db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    snapshot = load_snapshot(db)
    return [serialize_pair(pair) for pair in filter_paired_logs(pair_logs(snapshot.logs), q)]


@app.get("/api/reports/export")
def export_report(q: str = Query(""), db: Session = Depends(get_crib_db), session: dict = Depends(require_session)):
    snapshot = load_snapshot(db)
    body = export_pairs_csv(filter_paired_logs(pair_logs(snapshot.logs), q))
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="report.csv"'},
    )
