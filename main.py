import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

import auth
from auth import require_auth, bearer_token, delete_session
from config import APP_VERSION, CORS_ORIGINS, LOG_LEVEL, PORT, SERVER_NAME
from db import get_db, init_db, write_lock
from errors import register_error_handlers
from models import User
from progression import (
    EXPERIENCE_PER_LEVEL, Progress, apply_quest_completion, progress_percent
)
from quest_store import QuestStore
from schemas import (
    SignupIn, LoginIn, CreateQuestIn, CompleteQuestIn,
    UserOut, QuestOut, MessageOut, AuthOut, MeOut, QuestListOut,
    QuestCreatedOut, QuestCompletionOut, ResetDailyOut, StatsOut,
    ExportOut, HealthOut, PingOut,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("quest_api")

init_db()

# ── App y CORS ─────────────────────────────────────────────────────────────────
app = FastAPI(title="Quest Leveling API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        response = JSONResponse(status_code=500, content={"message": "Internal server error"})
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path,
                response.status_code, elapsed_ms)
    return response


def quest_store(
        db: Session = Depends(get_db),
        current: User = Depends(require_auth),
) -> QuestStore:
    return QuestStore(db, current.id)


# ── Auth ───────────────────────────────────────────────────────────────────────
@app.post("/api/auth/signup", response_model=AuthOut)
def signup(payload: SignupIn, db: Session = Depends(get_db)):
    user, token = auth.signup(db, payload.username, payload.email, payload.password)
    return AuthOut(
        message="User created successfully",
        user=UserOut.model_validate(user),
        token=token,
    )


@app.post("/api/auth/login", response_model=AuthOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user, token = auth.login(db, payload.username, payload.password)
    return AuthOut(
        message="Login successful",
        user=UserOut.model_validate(user),
        token=token,
    )


@app.post("/api/auth/logout", response_model=MessageOut)
def logout(
        db: Session = Depends(get_db),
        current: User = Depends(require_auth),
        token: str = Depends(bearer_token),
):
    delete_session(db, token)
    logger.info("Logout: %s", current.username)
    return MessageOut(message="Logout successful")


@app.get("/api/auth/me", response_model=MeOut)
def me(current: User = Depends(require_auth)):
    return MeOut(user=UserOut.model_validate(current))


# ── Quests ─────────────────────────────────────────────────────────────────────
@app.get("/api/quests", response_model=QuestListOut)
def list_quests(store: QuestStore = Depends(quest_store)):
    return QuestListOut(quests=[QuestOut.model_validate(q) for q in store.list_quests()])


@app.get("/api/quests/daily", response_model=QuestListOut)
def list_daily_quests(store: QuestStore = Depends(quest_store)):
    return QuestListOut(quests=[QuestOut.model_validate(q) for q in store.list_daily_quests()])


@app.post("/api/quests", response_model=QuestCreatedOut)
def create_quest(payload: CreateQuestIn, store: QuestStore = Depends(quest_store)):
    with write_lock:
        quest = store.create_quest(payload.name, payload.description, payload.is_daily)
    logger.info("Quest %s created for user %s", quest.id, store.owner_id)
    return QuestCreatedOut(
        message="Quest created successfully",
        quest=QuestOut.model_validate(quest),
    )


@app.post("/api/quests/reset-daily", response_model=ResetDailyOut)
def reset_daily(store: QuestStore = Depends(quest_store)):
    with write_lock:
        count = store.reset_daily()
    logger.info("Daily reset for user %s: %d quests", store.owner_id, count)
    return ResetDailyOut(message="Daily quests reset successfully", count=count)


@app.post("/api/quests/{quest_id}/complete", response_model=QuestCompletionOut)
def complete_quest(
        quest_id: int,
        data: Optional[CompleteQuestIn] = None,
        db: Session = Depends(get_db),
        current: User = Depends(require_auth),
):
    # sin body equivale a {"completed": true}
    completed = data.completed if data is not None else True
    store = QuestStore(db, current.id)
    with write_lock:
        # releer el progreso dentro del lock: otra petición pudo cambiarlo
        db.refresh(current)
        quest, was_completed = store.set_completion(quest_id, completed)

        before = Progress(level=current.level, experience=current.experience)
        after = apply_quest_completion(before, quest.experience_value, was_completed, completed)
        current.level = after.level
        current.experience = after.experience

        db.commit()
        db.refresh(quest)
        db.refresh(current)

    leveled_up = after.level > before.level
    if leveled_up:
        logger.info("Level up: %s reached level %d", current.username, current.level)

    return QuestCompletionOut(
        message=f"Quest marked as {'completed' if completed else 'pending'}",
        quest=QuestOut.model_validate(quest),
        user=UserOut.model_validate(current),
        leveled_up=leveled_up,
    )


# ── Progreso ───────────────────────────────────────────────────────────────────
@app.get("/api/stats", response_model=StatsOut)
def stats(
        store: QuestStore = Depends(quest_store),
        current: User = Depends(require_auth),
):
    return StatsOut(
        level=current.level,
        experience=current.experience,
        experience_to_next_level=EXPERIENCE_PER_LEVEL - current.experience,
        progress_percent=progress_percent(current.experience),
        streak_days=current.streak_days,
        **store.stats(),
    )


@app.get("/api/export", response_model=ExportOut)
def export_data(
        store: QuestStore = Depends(quest_store),
        current: User = Depends(require_auth),
):
    return ExportOut(
        user=UserOut.model_validate(current),
        quests=[QuestOut.model_validate(q) for q in store.list_quests()],
        daily_quests=[QuestOut.model_validate(q) for q in store.list_daily_quests()],
        exported_at=datetime.now(timezone.utc),
        version=APP_VERSION,
        system=SERVER_NAME,
    )


# ── Diagnóstico ────────────────────────────────────────────────────────────────
@app.get("/api/test", response_model=PingOut)
def test_server():
    return PingOut(message="Server is working!", timestamp=datetime.now(timezone.utc))


@app.get("/health", response_model=HealthOut)
def health():
    return HealthOut(status="OK", server=SERVER_NAME)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
