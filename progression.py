# progression.py
"""
Reglas de experiencia y nivel.

Completar una quest suma su recompensa; al llegar a EXPERIENCE_PER_LEVEL se
sube de nivel y se conserva el sobrante. Solo la transición pendiente ->
completada otorga experiencia, y desmarcar una quest no la descuenta.
"""
from dataclasses import dataclass

EXPERIENCE_PER_QUEST = 100
EXPERIENCE_PER_LEVEL = 1000


@dataclass(frozen=True)
class Progress:
    level: int = 1
    experience: int = 0


def apply_quest_completion(
        progress: Progress,
        reward: int,
        was_completed: bool,
        completed: bool,
) -> Progress:
    if not completed or was_completed:
        return progress

    level = progress.level
    experience = progress.experience + reward
    while experience >= EXPERIENCE_PER_LEVEL:
        level += 1
        experience -= EXPERIENCE_PER_LEVEL
    return Progress(level=level, experience=experience)


def progress_percent(experience: int) -> float:
    return round(experience % EXPERIENCE_PER_LEVEL / EXPERIENCE_PER_LEVEL * 100, 2)
