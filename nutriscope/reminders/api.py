from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response, status

from .agent import AgentIdentity, DeliveryAgent
from .config import settings
from .errors import ReminderNotFound
from .history import NotificationHistory
from .reconciler import Reconciler, ReconcileResult
from .repository import ReminderRepository
from .schemas import (
    AgentIdentityPayload,
    AgentStatus,
    DeliveredEventRead,
    ReconcileAllResponse,
    ReconcileResponse,
    ReminderRead,
    UserReminderSettings,
)
from .settings_store import SettingsStore


def verify_api_key_dependency(
    x_api_key: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> bool:
    """Accepts ``X-API-Key`` or ``Authorization: Bearer <key>`` when keys are required."""
    if not settings.REQUIRE_API_KEY:
        return True

    api_key = None
    if x_api_key:
        api_key = x_api_key
    elif authorization and authorization.startswith("Bearer "):
        api_key = authorization.split(" ", 1)[1]

    if not api_key or api_key not in settings.api_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return True


def get_repository(request: Request) -> ReminderRepository:
    return request.app.state.repository


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store


def get_reconciler(request: Request) -> Reconciler:
    return request.app.state.reconciler


def get_agent(request: Request) -> DeliveryAgent:
    return request.app.state.agent


def get_history(request: Request) -> NotificationHistory:
    return request.app.state.history


router = APIRouter(dependencies=[Depends(verify_api_key_dependency)])


def _reconcile_response(result: ReconcileResult) -> ReconcileResponse:
    return ReconcileResponse(
        user_id=result.user_id,
        disabled=result.disabled,
        reminders=[ReminderRead.model_validate(r) for r in result.reminders],
        errors=result.errors,
    )


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/settings/{user_id}", response_model=UserReminderSettings)
def get_settings_endpoint(user_id: str, store: SettingsStore = Depends(get_settings_store)):
    stored = store.get(user_id)
    if stored is None:
        # Nothing saved yet: the app shows defaults with reminders off
        return UserReminderSettings()
    return stored


@router.put("/settings/{user_id}", response_model=ReconcileResponse)
def save_settings_endpoint(
    user_id: str,
    payload: UserReminderSettings,
    reconciler: Reconciler = Depends(get_reconciler),
):
    """Persist the settings document and rebuild the user's reminders.

    Per-key configuration problems do not fail the request; they come back in
    ``errors`` and the affected keys are simply not scheduled.
    """
    return _reconcile_response(reconciler.save_and_reconcile(user_id, payload))


@router.get("/", response_model=List[ReminderRead])
def list_reminders_endpoint(user_id: str, repository: ReminderRepository = Depends(get_repository)):
    return [ReminderRead.model_validate(r) for r in repository.list_for_user(user_id)]


@router.get("/due", response_model=List[ReminderRead])
def list_due_endpoint(
    user_id: str,
    lookahead_minutes: Optional[int] = Query(None, ge=0),
    catchup_minutes: Optional[int] = Query(None, ge=0),
    now: Optional[datetime] = None,
    repository: ReminderRepository = Depends(get_repository),
):
    lookahead = timedelta(minutes=lookahead_minutes) if lookahead_minutes is not None else settings.lookahead
    catchup = timedelta(minutes=catchup_minutes) if catchup_minutes is not None else settings.catchup_window
    items = repository.list_due(user_id, lookahead, catchup, now=now)
    return [ReminderRead.model_validate(r) for r in items]


@router.post("/reconcile-all", response_model=ReconcileAllResponse)
def reconcile_all_endpoint(reconciler: Reconciler = Depends(get_reconciler)):
    results = reconciler.reconcile_all()
    return ReconcileAllResponse(
        users=len(results),
        reminders=sum(len(r.reminders) for r in results.values()),
        errors={uid: r.errors for uid, r in results.items() if r.errors},
    )


@router.post("/agent/identity", response_model=AgentStatus)
def set_agent_identity_endpoint(payload: AgentIdentityPayload, agent: DeliveryAgent = Depends(get_agent)):
    agent.set_identity(AgentIdentity(
        user_id=payload.user_id,
        push_token=payload.push_token,
        credentials=dict(payload.credentials),
    ))
    return AgentStatus(user_id=payload.user_id, running=agent.running)


@router.delete("/agent/identity", status_code=204)
def clear_agent_identity_endpoint(agent: DeliveryAgent = Depends(get_agent)):
    agent.clear_identity()
    return Response(status_code=204)


@router.get("/agent", response_model=AgentStatus)
def agent_status_endpoint(agent: DeliveryAgent = Depends(get_agent)):
    identity = agent.identity
    return AgentStatus(user_id=identity.user_id if identity else None, running=agent.running)


@router.get("/history", response_model=List[DeliveredEventRead])
def history_endpoint(
    user_id: Optional[str] = None,
    unread_only: bool = False,
    history: NotificationHistory = Depends(get_history),
):
    return [DeliveredEventRead.model_validate(e) for e in history.entries(user_id=user_id, unread_only=unread_only)]


@router.post("/history/read")
def mark_history_read_endpoint(
    event_id: Optional[str] = None,
    user_id: Optional[str] = None,
    history: NotificationHistory = Depends(get_history),
):
    if event_id is not None:
        if not history.mark_read(event_id):
            raise HTTPException(status_code=404, detail="Event not found")
        marked = 1
    else:
        marked = history.mark_all_read(user_id=user_id)
    return {"marked": marked, "unread": history.unread_count(user_id=user_id)}


@router.delete("/user/{user_id}")
def delete_user_reminders_endpoint(user_id: str, repository: ReminderRepository = Depends(get_repository)):
    return {"deleted": repository.delete_all_for_user(user_id)}


@router.get("/{reminder_id}", response_model=ReminderRead)
def get_reminder_endpoint(reminder_id: str, repository: ReminderRepository = Depends(get_repository)):
    reminder = repository.get(reminder_id)
    if reminder is None:
        raise ReminderNotFound(reminder_id)
    return ReminderRead.model_validate(reminder)


@router.post("/{reminder_id}/advance", response_model=ReminderRead)
def advance_reminder_endpoint(
    reminder_id: str,
    now: Optional[datetime] = None,
    expected_trigger_count: Optional[int] = Query(None, ge=0),
    repository: ReminderRepository = Depends(get_repository),
):
    reminder = repository.advance(reminder_id, now=now, expected_trigger_count=expected_trigger_count)
    if reminder is None:
        if expected_trigger_count is not None and repository.get(reminder_id) is not None:
            raise HTTPException(status_code=409, detail="Reminder was already advanced")
        raise ReminderNotFound(reminder_id)
    return ReminderRead.model_validate(reminder)
