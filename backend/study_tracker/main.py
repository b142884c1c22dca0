"""FastAPI application entrypoint and HTTP controllers.

Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses.

Endpoints implemented:
- POST /auth/register, POST /auth/login
- GET/POST /tasks, PATCH/DELETE /tasks/{id}
- GET/POST /syllabus/topics, PATCH/DELETE /syllabus/topics/{id}, GET /syllabus/progress
- POST /sessions/start, POST /sessions/{id}/stop, GET /sessions, GET /sessions/active,
  DELETE /sessions/{id}
- GET/POST /goals, PATCH/DELETE /goals/{id}
- GET/POST /calendar-tasks, DELETE /calendar-tasks/{id}
- GET/PATCH /settings, GET /settings/progress
- GET/POST /test-records, PATCH/DELETE /test-records/{id}
- POST /activity, GET /tracker/state, GET /tracker/streak, GET /tracker/subjects
- GET /recommendations
- GET /analytics
- GET /health
"""

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlmodel import Session
from datetime import date
from typing import List, Literal, Optional
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services, repositories, models
from .auth import get_current_user
from .schemas import (
    ActivityIn, CalendarTaskIn, GoalIn, GoalUpdate, RecommendationOut, RegisterIn, SessionStartIn,
    SessionStopIn, SettingsUpdate, TaskIn, TaskUpdate, TestRecordIn, TestRecordUpdate, TopicIn, TopicUpdate,
)
from .config import settings

app = FastAPI(title="Study Tracker API")
logger = logging.getLogger("study_tracker.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

LOGGED_PREFIXES = ("/activity", "/tracker", "/recommendations", "/analytics", "/sessions")

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    logged = request.url.path.startswith(LOGGED_PREFIXES)
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        if logged:
            logger.exception(
                "request_failed %s",
                json.dumps(
                    {
                        "request_id": req_id,
                        "path": request.url.path,
                        "method": request.method,
                        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
                    },
                    ensure_ascii=True,
                ),
            )
        raise
    response.headers["X-Request-ID"] = req_id
    if logged:
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
                },
                ensure_ascii=True,
            ),
        )
    return response


def _not_found(e: LookupError):
    return HTTPException(status_code=404, detail=str(e))


@app.post('/auth/register')
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new user (idempotent).

    Returns the existing user if the username is already taken, which
    keeps automation and tests simple.
    """
    existing = repositories.UserRepository(db).get_by_username(payload.username)
    if existing:
        return {'id': existing.id, 'username': existing.username}
    user = services.AuthService(db).register(payload.username, payload.password)
    return {'id': user.id, 'username': user.username}


@app.post('/auth/login')
def login(payload: RegisterIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token."""
    token = services.AuthService(db).authenticate(payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token}


@app.get('/tasks')
def list_tasks(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TaskService(db).list(user.id)


@app.post('/tasks')
def create_task(payload: TaskIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.TaskService(db).create(user.id, **payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.patch('/tasks/{task_id}')
def update_task(task_id: int, payload: TaskUpdate, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    try:
        return services.TaskService(db).update(user.id, task_id, payload.model_dump(exclude_unset=True))
    except LookupError as e:
        raise _not_found(e)


@app.delete('/tasks/{task_id}')
def delete_task(task_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        services.TaskService(db).delete(user.id, task_id)
    except LookupError as e:
        raise _not_found(e)
    return {'status': 'ok'}


@app.get('/syllabus/topics')
def list_topics(subject: Optional[str] = None, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    return repositories.TopicRepository(db).list_for_user(user.id, subject=subject)


@app.post('/syllabus/topics')
def create_topic(payload: TopicIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.SyllabusService(db).add_topic(user.id, payload.subject, payload.name)


@app.patch('/syllabus/topics/{topic_id}')
def update_topic(topic_id: int, payload: TopicUpdate, db: Session = Depends(get_session),
                 user: models.User = Depends(get_current_user)):
    try:
        return services.SyllabusService(db).update_topic(user.id, topic_id, payload.model_dump(exclude_unset=True))
    except LookupError as e:
        raise _not_found(e)


@app.get('/syllabus/progress')
def syllabus_progress(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Completion percentage per subject."""
    return services.SyllabusService(db).progress(user.id)


@app.post('/sessions/start')
def start_session(payload: SessionStartIn, db: Session = Depends(get_session),
                  user: models.User = Depends(get_current_user)):
    """Start a Pomodoro session; only one may run at a time."""
    try:
        return services.StudySessionService(db).start(user.id, payload.subject, payload.task_name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post('/sessions/{session_id}/stop')
def stop_session(session_id: int, payload: SessionStopIn, db: Session = Depends(get_session),
                 user: models.User = Depends(get_current_user)):
    """Stop a running session and log its study time for streaks."""
    try:
        return services.StudySessionService(db).stop(user.id, session_id, payload.duration)
    except LookupError as e:
        raise _not_found(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get('/sessions')
def list_sessions(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.StudySessionService(db).list(user.id)


@app.get('/sessions/active')
def active_session(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.StudySessionService(db).active(user.id)


@app.get('/test-records')
def list_test_records(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TestRecordService(db).list(user.id)


@app.post('/test-records')
def create_test_record(payload: TestRecordIn, db: Session = Depends(get_session),
                       user: models.User = Depends(get_current_user)):
    """Store a test result; `performance` is derived from the marks."""
    try:
        return services.TestRecordService(db).create(user.id, payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.patch('/test-records/{record_id}')
def update_test_record(record_id: int, payload: TestRecordUpdate, db: Session = Depends(get_session),
                       user: models.User = Depends(get_current_user)):
    try:
        return services.TestRecordService(db).update(user.id, record_id, payload.model_dump(exclude_unset=True))
    except LookupError as e:
        raise _not_found(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete('/test-records/{record_id}')
def delete_test_record(record_id: int, db: Session = Depends(get_session),
                       user: models.User = Depends(get_current_user)):
    try:
        services.TestRecordService(db).delete(user.id, record_id)
    except LookupError as e:
        raise _not_found(e)
    return {'status': 'ok'}


@app.post('/activity')
def log_activity(payload: ActivityIn, db: Session = Depends(get_session),
                 user: models.User = Depends(get_current_user)):
    """Manually log study time and return the updated tracker state."""
    state = services.TrackerService(db).log_activity(
        user.id, subject=payload.subject, day=payload.date,
        activity_type=payload.type, duration_minutes=payload.duration_minutes,
    )
    return state.to_dict()


@app.get('/tracker/state')
def tracker_state(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TrackerService(db).refresh_state(user.id).to_dict()


@app.get('/tracker/streak')
def tracker_streak(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TrackerService(db).refresh_state(user.id).streak.to_dict()


@app.get('/tracker/subjects')
def tracker_subjects(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    state = services.TrackerService(db).refresh_state(user.id)
    return {name: progress.to_dict() for name, progress in state.subjects.items()}


@app.get('/recommendations', response_model=List[RecommendationOut])
def recommendations(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Freshly computed recommendations, highest priority first (max 10)."""
    return [r.to_dict() for r in services.TrackerService(db).recommendations(user.id)]


@app.get('/analytics')
def analytics(time_range: Literal["week", "month", "year"] = Query("week", alias="range"),
              db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Study hours, daily hours, score trends and weak topics for a window."""
    return services.TrackerService(db).analytics(user.id, time_range=time_range)


@app.delete('/syllabus/topics/{topic_id}')
def delete_topic(topic_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        services.SyllabusService(db).delete_topic(user.id, topic_id)
    except LookupError as e:
        raise _not_found(e)
    return {'status': 'ok'}


@app.delete('/sessions/{session_id}')
def delete_session(session_id: int, db: Session = Depends(get_session),
                   user: models.User = Depends(get_current_user)):
    try:
        services.StudySessionService(db).delete(user.id, session_id)
    except LookupError as e:
        raise _not_found(e)
    return {'status': 'ok'}


@app.get('/goals')
def list_goals(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GoalService(db).list(user.id)


@app.post('/goals')
def create_goal(payload: GoalIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.GoalService(db).create(user.id, payload.title, payload.deadline, payload.type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.patch('/goals/{goal_id}')
def update_goal(goal_id: int, payload: GoalUpdate, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    try:
        return services.GoalService(db).update(user.id, goal_id, payload.model_dump(exclude_unset=True))
    except LookupError as e:
        raise _not_found(e)


@app.delete('/goals/{goal_id}')
def delete_goal(goal_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        services.GoalService(db).delete(user.id, goal_id)
    except LookupError as e:
        raise _not_found(e)
    return {'status': 'ok'}


@app.get('/calendar-tasks')
def list_calendar_tasks(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.CalendarService(db).list(user.id)


@app.post('/calendar-tasks')
def create_calendar_task(payload: CalendarTaskIn, db: Session = Depends(get_session),
                         user: models.User = Depends(get_current_user)):
    return services.CalendarService(db).create(user.id, payload.model_dump())


@app.delete('/calendar-tasks/{task_id}')
def delete_calendar_task(task_id: int, db: Session = Depends(get_session),
                         user: models.User = Depends(get_current_user)):
    try:
        services.CalendarService(db).delete(user.id, task_id)
    except LookupError as e:
        raise _not_found(e)
    return {'status': 'ok'}


@app.get('/settings')
def get_settings(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Current preferences; defaults until the user saves any."""
    return services.SettingsService(db).get(user.id)


@app.patch('/settings')
def update_settings(payload: SettingsUpdate, db: Session = Depends(get_session),
                    user: models.User = Depends(get_current_user)):
    return services.SettingsService(db).update(user.id, payload.model_dump(exclude_unset=True))


@app.get('/settings/progress')
def settings_progress(week_start: Optional[date] = None, db: Session = Depends(get_session),
                      user: models.User = Depends(get_current_user)):
    """Study hours this week against `study_hours_goal`."""
    return services.SettingsService(db).weekly_progress(user.id, week_start)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
