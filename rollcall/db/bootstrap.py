# rollcall/db/bootstrap.py
import logging
import os
from alembic import command
from alembic.config import Config

from rollcall.core.config import settings
from rollcall.db.session import SessionLocal
from rollcall.db.init_db import init_db

logger = logging.getLogger(__name__)

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

def run_migrations_and_seed() -> None:
    # Point explicitly at alembic.ini and migrations/
    cfg = Config(os.path.join(BASE_DIR, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(BASE_DIR, "migrations"))

    command.upgrade(cfg, "head")
    logger.info("database migrated to head")

    if settings.SEED_DEMO_DATA:
        with SessionLocal() as db:
            init_db(db)
