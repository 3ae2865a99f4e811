"""FastAPI dashboard for classroom behavior incidents."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response
from pydantic import BaseModel

from behavior_tracker import __version__
from behavior_tracker.config import Settings, get_settings
from behavior_tracker.core import AggregationEngine, ReportAssembler
from behavior_tracker.export import CSV_MIME_TYPE
from behavior_tracker.models import BehaviorDefinition, IncidentRecord, ReportViewModel
from behavior_tracker.roster import StudentRoster
from behavior_tracker.session import ReportFetchError, ReportSession
from behavior_tracker.store import InMemoryRecordStore
from behavior_tracker.taxonomy import BehaviorCatalog

# ---------------------------------------------------------------------------
# Shared application state
# ---------------------------------------------------------------------------

_settings = get_settings()
_store = InMemoryRecordStore(tz=_settings.tz)
_catalog = BehaviorCatalog()
_roster = StudentRoster()
_sessions: dict[str, ReportSession] = {}

app = FastAPI(
    title="Behavior Tracker Dashboard",
    description="Classroom behavior incident tracker: REST API",
    version=__version__,
)


def get_store() -> InMemoryRecordStore:
    """FastAPI dependency that returns the global incident store."""
    return _store


def get_catalog() -> BehaviorCatalog:
    """FastAPI dependency that returns the global behavior catalog."""
    return _catalog


def get_roster() -> StudentRoster:
    """FastAPI dependency that returns the global student roster."""
    return _roster


def get_app_settings() -> Settings:
    """FastAPI dependency that returns the active settings."""
    return _settings


# ---------------------------------------------------------------------------
# Identity boundary
# ---------------------------------------------------------------------------


class Viewer(BaseModel):
    """Identity forwarded by the upstream authentication layer."""

    email: str
    uid: str
    is_admin: bool


def current_viewer(
    x_user_email: Annotated[str | None, Header()] = None,
    x_user_id: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_app_settings),  # noqa: B008
) -> Viewer:
    """Resolve the signed-in viewer; 401 when no identity was forwarded."""
    email = (x_user_email or "").strip()
    if not email:
        raise HTTPException(status_code=401, detail="Sign in required")
    return Viewer(
        email=email,
        uid=(x_user_id or "").strip() or email.lower(),
        is_admin=settings.is_admin(email),
    )


def require_admin(viewer: Viewer = Depends(current_viewer)) -> Viewer:  # noqa: B008
    """Reject non-admin viewers before any admin-only operation runs."""
    if not viewer.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return viewer


def get_session(
    viewer: Viewer = Depends(require_admin),  # noqa: B008
    store: InMemoryRecordStore = Depends(get_store),  # noqa: B008
    catalog: BehaviorCatalog = Depends(get_catalog),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
) -> ReportSession:
    """Return the viewer's report session, starting one on first use."""
    session = _sessions.get(viewer.email.lower())
    if session is None:
        assembler = ReportAssembler(
            AggregationEngine(tz=settings.tz, top_n=settings.top_n)
        )
        session = ReportSession(
            viewer.email,
            store,
            catalog,
            assembler=assembler,
            today=lambda: store.now().astimezone(settings.tz).date(),
            window_days=settings.window_days,
        )
        session.start()
        _sessions[viewer.email.lower()] = session
    return session


# ---------------------------------------------------------------------------
# Request/Response schemas
# ---------------------------------------------------------------------------


class AddBehaviorRequest(BaseModel):
    """Request body for adding a behavior definition."""

    name: str
    category: str | None = None


class BehaviorMutationResponse(BaseModel):
    """Outcome of an add; ``created`` is False for a rejected duplicate."""

    created: bool
    behavior: BehaviorDefinition | None = None


class LogIncidentRequest(BaseModel):
    """Request body for logging one incident."""

    behavior_id: str
    student_name: str
    grade: str | None = None


class StudentRequest(BaseModel):
    """Request body for roster changes."""

    name: str


class RosterResponse(BaseModel):
    """Students of one teacher in one grade."""

    grade: str
    students: list[str]


ReportFilters = dict[str, Any]


def report_filters(
    start: Annotated[str | None, Query()] = None,
    end: Annotated[str | None, Query()] = None,
    student: Annotated[str | None, Query()] = None,
    category: Annotated[str | None, Query()] = None,
    teacher: Annotated[str | None, Query()] = None,
) -> ReportFilters:
    """Collect the report filter query parameters."""
    return {
        "start": start,
        "end": end,
        "student": student,
        "category": category,
        "teacher": teacher,
    }


def _load_report(session: ReportSession, filters: ReportFilters) -> ReportViewModel:
    try:
        return session.load(**filters)
    except ReportFetchError as exc:
        raise HTTPException(
            status_code=503, detail=f"Could not load incidents: {exc}"
        ) from exc


# ---------------------------------------------------------------------------
# Endpoints: behaviors
# ---------------------------------------------------------------------------


@app.get(
    "/api/behaviors",
    response_model=list[BehaviorDefinition],
    summary="List active behaviors",
)
def list_behaviors(
    catalog: BehaviorCatalog = Depends(get_catalog),  # noqa: B008
) -> list[BehaviorDefinition]:
    """Return active behaviors ordered by category, then name."""
    return catalog.active()


@app.post(
    "/api/behaviors",
    response_model=BehaviorMutationResponse,
    summary="Add a behavior",
)
def add_behavior(
    request: AddBehaviorRequest,
    response: Response,
    viewer: Viewer = Depends(require_admin),  # noqa: B008
    catalog: BehaviorCatalog = Depends(get_catalog),  # noqa: B008
) -> BehaviorMutationResponse:
    """Add a behavior. A blank or duplicate name is a no-op (``created`` false)."""
    behavior = catalog.add(request.name, request.category, updated_by=viewer.email)
    if behavior is not None:
        response.status_code = 201
    return BehaviorMutationResponse(created=behavior is not None, behavior=behavior)


@app.delete(
    "/api/behaviors/{behavior_id}",
    status_code=204,
    summary="Retire a behavior",
)
def retire_behavior(
    behavior_id: str,
    viewer: Viewer = Depends(require_admin),  # noqa: B008
    catalog: BehaviorCatalog = Depends(get_catalog),  # noqa: B008
) -> Response:
    """Retire a behavior; logged incidents keep their snapshot of it."""
    if not catalog.retire(behavior_id, updated_by=viewer.email):
        raise HTTPException(
            status_code=404, detail=f"Behavior {behavior_id!r} not found"
        )
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: incidents
# ---------------------------------------------------------------------------


@app.post(
    "/api/incidents",
    response_model=IncidentRecord,
    status_code=201,
    summary="Log a behavior incident",
)
def log_incident(
    request: LogIncidentRequest,
    viewer: Viewer = Depends(current_viewer),  # noqa: B008
    store: InMemoryRecordStore = Depends(get_store),  # noqa: B008
    catalog: BehaviorCatalog = Depends(get_catalog),  # noqa: B008
) -> IncidentRecord:
    """Log one incident for a student against an active behavior."""
    behavior = catalog.get(request.behavior_id)
    if behavior is None or not behavior.active:
        raise HTTPException(
            status_code=404, detail=f"Behavior {request.behavior_id!r} not found"
        )
    student_name = request.student_name.strip()
    if not student_name:
        raise HTTPException(status_code=422, detail="Select a student first")
    return store.log_incident(
        behavior,
        student_name=student_name,
        teacher_email=viewer.email,
        teacher_uid=viewer.uid,
        grade=request.grade,
    )


@app.get(
    "/api/incidents/today",
    response_model=list[IncidentRecord],
    summary="Today's incidents, newest first",
)
def todays_incidents(
    mine: Annotated[bool, Query()] = False,
    viewer: Viewer = Depends(current_viewer),  # noqa: B008
    store: InMemoryRecordStore = Depends(get_store),  # noqa: B008
) -> list[IncidentRecord]:
    """Return up to 50 of today's incidents; ``mine`` limits them to the viewer."""
    return store.todays_log(teacher_email=viewer.email if mine else None)


# ---------------------------------------------------------------------------
# Endpoints: rosters
# ---------------------------------------------------------------------------


def _roster_response(
    roster: StudentRoster, viewer: Viewer, grade: str
) -> RosterResponse:
    try:
        students = roster.students(viewer.uid, grade)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return RosterResponse(grade=grade, students=students)


@app.get(
    "/api/rosters/{grade}/students",
    response_model=RosterResponse,
    summary="List the viewer's students in a grade",
)
def list_students(
    grade: str,
    viewer: Viewer = Depends(current_viewer),  # noqa: B008
    roster: StudentRoster = Depends(get_roster),  # noqa: B008
) -> RosterResponse:
    """Return the viewer's roster for ``grade``."""
    return _roster_response(roster, viewer, grade)


@app.post(
    "/api/rosters/{grade}/students",
    response_model=RosterResponse,
    summary="Add a student to the viewer's roster",
)
def add_student(
    grade: str,
    request: StudentRequest,
    viewer: Viewer = Depends(current_viewer),  # noqa: B008
    roster: StudentRoster = Depends(get_roster),  # noqa: B008
) -> RosterResponse:
    """Add a student; blank names and duplicates leave the roster unchanged."""
    try:
        roster.add(viewer.uid, grade, request.name)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _roster_response(roster, viewer, grade)


@app.delete(
    "/api/rosters/{grade}/students/{name}",
    response_model=RosterResponse,
    summary="Remove a student from the viewer's roster",
)
def remove_student(
    grade: str,
    name: str,
    viewer: Viewer = Depends(current_viewer),  # noqa: B008
    roster: StudentRoster = Depends(get_roster),  # noqa: B008
) -> RosterResponse:
    """Remove a student from the viewer's roster for ``grade``."""
    try:
        removed = roster.remove(viewer.uid, grade, name)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if not removed:
        raise HTTPException(status_code=404, detail=f"Student {name!r} not found")
    return _roster_response(roster, viewer, grade)


# ---------------------------------------------------------------------------
# Endpoints: reports
# ---------------------------------------------------------------------------


@app.get(
    "/api/report",
    response_model=ReportViewModel,
    summary="KPIs, trend, top behaviors and heat matrix",
)
def get_report(
    filters: ReportFilters = Depends(report_filters),  # noqa: B008
    session: ReportSession = Depends(get_session),  # noqa: B008
) -> ReportViewModel:
    """Fetch the date range and return the filtered report."""
    return _load_report(session, filters)


@app.get(
    "/api/report/export",
    summary="Download the filtered incidents as CSV",
    response_class=Response,
)
def export_report(
    filters: ReportFilters = Depends(report_filters),  # noqa: B008
    session: ReportSession = Depends(get_session),  # noqa: B008
) -> Response:
    """Return the filtered incidents as a CSV attachment."""
    view = _load_report(session, filters)
    filename, text = session.export_csv(view)
    return Response(
        content=text,
        media_type=CSV_MIME_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.delete(
    "/api/session",
    status_code=204,
    summary="Discard the viewer's report session",
)
def end_session(
    viewer: Viewer = Depends(current_viewer),  # noqa: B008
) -> Response:
    """Sign-out hook: stop the viewer's taxonomy subscription and drop state."""
    session = _sessions.pop(viewer.email.lower(), None)
    if session is not None:
        session.close()
    return Response(status_code=204)


def create_app(
    initial_records: list[IncidentRecord] | None = None,
    initial_behaviors: list[BehaviorDefinition] | None = None,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> FastAPI:
    """Factory to create a dashboard app with optional seed data.

    Useful for testing and programmatic embedding. ``now`` pins the store
    clock, which also fixes "today" for today's log.
    """
    global _settings, _store, _catalog, _roster  # noqa: PLW0603
    for session in _sessions.values():
        session.close()
    _sessions.clear()

    _settings = settings or get_settings()
    _store = InMemoryRecordStore(
        tz=_settings.tz, clock=(lambda: now) if now is not None else None
    )
    _catalog = BehaviorCatalog()
    _roster = StudentRoster()
    if initial_behaviors:
        _catalog.load(initial_behaviors)
    if initial_records:
        _store.bulk_import(initial_records)
    return app


def load_into_store(records: list[dict[str, Any]]) -> int:
    """Helper: deserialize and load raw documents into the global store."""
    return _store.bulk_import_json(records)


def load_into_catalog(behaviors: list[dict[str, Any]]) -> int:
    """Helper: deserialize and load raw behavior documents into the catalog."""
    return _catalog.bulk_import_json(behaviors)


__all__ = [
    "app",
    "create_app",
    "load_into_catalog",
    "load_into_store",
]
