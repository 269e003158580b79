# migrations/env.py
from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

# (1) load .env before settings are read
load_dotenv()

from rollcall.core.config import settings  # noqa: E402
from rollcall.db.base import Base  # noqa: E402
from rollcall.db.session import normalize_url  # noqa: E402
import rollcall.models  # noqa: E402,F401  registers every table

config = context.config

# (2) alembic uses the same URL as the app
config.set_main_option("sqlalchemy.url", normalize_url(settings.DATABASE_URL))

target_metadata = Base.metadata

def run_migrations_offline():
    url = config.get_main_option("sqlalchemy.url")
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True, render_as_batch=True)
    with context.begin_transaction():
        context.run_migrations()

def run_migrations_online():
    connectable = engine_from_config(config.get_section(config.config_ini_section), prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, render_as_batch=True)
        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
