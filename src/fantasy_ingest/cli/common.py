from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from fantasy_ingest.core.config import settings
from fantasy_ingest.core.logging import configure_logging
from fantasy_ingest.db import DatabaseConfig, create_db_engine, create_session_factory
from fantasy_ingest.db.models import IngestedSnapshot


def setup_logging() -> None:
    configure_logging(settings.log_level, settings.log_format)


def session_factory() -> sessionmaker[Session]:
    """
    Session factory for CLI commands, bound to the configured database.
    Creates missing tables so a fresh SQLite file works without migrations.
    """
    engine = create_db_engine(
        DatabaseConfig(database_url=settings.database_url, echo=settings.db_echo)
    )
    IngestedSnapshot.metadata.create_all(engine)
    return create_session_factory(engine)
