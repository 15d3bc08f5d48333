# schemas.py
from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def _as_utc(value: datetime) -> datetime:
    # SQLite devuelve fechas sin zona; todas se guardan en UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    # JSON en camelCase (isDaily, experienceValue...), atributos en snake_case
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Entrada ────────────────────────────────────────────────────────────────────
# Los campos son opcionales: la validación la hacen las rutas para responder
# 400 con el mensaje exacto en lugar del 422 genérico de FastAPI.
class SignupIn(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginIn(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None


class CreateQuestIn(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_daily: bool = False


class CompleteQuestIn(CamelModel):
    completed: bool = True


# ── Salida ─────────────────────────────────────────────────────────────────────
class UserOut(CamelModel):
    id: int
    username: str
    email: str
    level: int
    experience: int
    streak_days: int
    created_at: UtcDatetime


class QuestOut(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    is_daily: bool
    completed: bool
    experience_value: int
    created_at: UtcDatetime


class MessageOut(CamelModel):
    message: str


class AuthOut(CamelModel):
    message: str
    user: UserOut
    token: str


class MeOut(CamelModel):
    user: UserOut


class QuestListOut(CamelModel):
    quests: list[QuestOut]


class QuestCreatedOut(CamelModel):
    message: str
    quest: QuestOut


class QuestCompletionOut(CamelModel):
    message: str
    quest: QuestOut
    user: UserOut
    leveled_up: bool


class ResetDailyOut(CamelModel):
    message: str
    count: int


class StatsOut(CamelModel):
    level: int
    experience: int
    experience_to_next_level: int
    progress_percent: float
    streak_days: int
    total_quests: int
    daily_quests: int
    completed_today: int


class ExportOut(CamelModel):
    user: UserOut
    quests: list[QuestOut]
    daily_quests: list[QuestOut]
    exported_at: UtcDatetime
    version: str
    system: str


class HealthOut(CamelModel):
    status: str
    server: str


class PingOut(CamelModel):
    message: str
    timestamp: UtcDatetime
