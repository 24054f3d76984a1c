from logging.config import fileConfig
from sqlalchemy import pool, create_engine
from alembic import context

# DATABASE_URL comes from the same .env-backed settings the service uses
from config.app_config import DATABASE_URL
from database.models import Base
from database import affiliate_models  # noqa: F401 - register affiliate tables

config = context.config

if config.config_file_name:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url():
    # alembic.ini only carries a fallback; ConfigParser needs % escaped there
    if DATABASE_URL:
        return DATABASE_URL
    return config.get_main_option("sqlalchemy.url").replace("%%", "%")


def run_migrations_offline():
    """Emit the migration SQL without connecting."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations against the configured database."""
    connectable = create_engine(_database_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
