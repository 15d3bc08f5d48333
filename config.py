# config.py
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── Base de datos ──────────────────────────────────────────────────────────────
# Si viene DATABASE_URL la usamos tal cual; si no, SQLite local en ./data/app.db
DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    db_file = Path("./data/app.db").expanduser().resolve()
    db_file.parent.mkdir(parents=True, exist_ok=True)
    # as_posix() para que SQLAlchemy reciba barras con formato sqlite
    DATABASE_URL = f"sqlite:///{db_file.as_posix()}"

# ── Sesiones ───────────────────────────────────────────────────────────────────
SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "7"))

# ── Servidor ───────────────────────────────────────────────────────────────────
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
SERVER_NAME = os.getenv("SERVER_NAME", "Clinex Leveling")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", "8000"))
