# quest_store.py
from typing import Optional

from sqlalchemy.orm import Session

from errors import NotFoundError, ValidationError
from models import Quest, utcnow
from progression import EXPERIENCE_PER_QUEST

# rango de un INTEGER de SQLite; fuera de él ningún id puede existir
MAX_QUEST_ID = 2**63 - 1


class QuestStore:
    """Quests de un usuario. Todas las consultas van filtradas por owner_id."""

    def __init__(self, db: Session, owner_id: int):
        self.db = db
        self.owner_id = owner_id

    def _query(self):
        return self.db.query(Quest).filter(Quest.owner_id == self.owner_id)

    def list_quests(self) -> list[Quest]:
        return self._query().order_by(Quest.id).all()

    def list_daily_quests(self) -> list[Quest]:
        return self._query().filter(Quest.is_daily.is_(True)).order_by(Quest.id).all()

    def get_quest(self, quest_id: int) -> Quest:
        if not 1 <= quest_id <= MAX_QUEST_ID:
            raise NotFoundError("Quest not found")
        quest = self._query().filter(Quest.id == quest_id).first()
        if not quest:
            raise NotFoundError("Quest not found")
        return quest

    def create_quest(self, name: Optional[str], description: Optional[str] = None,
                     is_daily: bool = False) -> Quest:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Quest name is required")

        quest = Quest(
            owner_id=self.owner_id,
            name=name,
            description=description,
            is_daily=bool(is_daily),
            completed=False,
            experience_value=EXPERIENCE_PER_QUEST,
            created_at=utcnow(),
        )
        self.db.add(quest)
        self.db.commit()
        self.db.refresh(quest)
        return quest

    def set_completion(self, quest_id: int, completed: bool) -> tuple[Quest, bool]:
        """
        Devuelve la quest actualizada y si ya estaba completada antes.

        Solo hace flush: el llamador hace commit junto con el progreso del
        usuario, así ambos cambios quedan en la misma transacción.
        """
        quest = self.get_quest(quest_id)
        was_completed = bool(quest.completed)
        quest.completed = bool(completed)
        self.db.flush()
        return quest, was_completed

    def reset_daily(self) -> int:
        affected = self._query().filter(
            Quest.is_daily.is_(True),
            Quest.completed.is_(True),
        ).all()
        for quest in affected:
            quest.completed = False
        self.db.commit()
        return len(affected)

    def stats(self) -> dict:
        quests = self.list_quests()
        daily = [q for q in quests if q.is_daily]
        return {
            "total_quests": len(quests),
            "daily_quests": len(daily),
            "completed_today": sum(1 for q in daily if q.completed),
        }
