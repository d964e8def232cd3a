"""Create sample primary and reference databases for local trials."""
import logging
import sys

from sqlmodel import Session, SQLModel, create_engine, select

from config import Settings, expand_path
from models import TenKProject, TimeSpent

logger = logging.getLogger(__name__)


def _engine_for(location: str):
    path = expand_path(location)
    path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{path}", echo=False)


def seed_primary(location: str):
    """Create the entries table with a few sample rows."""
    engine = _engine_for(location)
    SQLModel.metadata.create_all(engine, tables=[TimeSpent.__table__])
    with Session(engine) as session:
        existing = session.exec(select(TimeSpent)).first()
        if existing:
            logger.info(f"SEED_SKIPPED location={location} reason=has_data")
            return 0

        sample_entries = [
            TimeSpent(date="2025-07-01", start="09:00", end="11:30", project_id=42,
                      project_directory="/proj/42", description="draft", activity="G"),
            TimeSpent(date="2025-07-01", start="11:30", end="12:15", project_id=42,
                      project_directory="/proj/42", description="review comments", activity="E"),
            TimeSpent(date="2025-07-02", start="08:45", end="10:00", project_id=7,
                      project_directory="/proj/7", description="helpdesk", activity="S"),
        ]
        session.add_all(sample_entries)
        session.commit()
    engine.dispose()
    return len(sample_entries)


def seed_reference(location: str):
    """Create the project reference table with sample projects."""
    engine = _engine_for(location)
    SQLModel.metadata.create_all(engine, tables=[TenKProject.__table__])
    with Session(engine) as session:
        existing = session.exec(select(TenKProject)).first()
        if existing:
            logger.info(f"SEED_SKIPPED location={location} reason=has_data")
            return 0

        projects = [
            TenKProject(project_id=7, project_directory="/proj/7"),
            TenKProject(project_id=42, project_directory="/proj/42-renamed"),
        ]
        session.add_all(projects)
        session.commit()
    engine.dispose()
    return len(projects)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    settings = Settings.from_env()
    if settings.primary_table != TimeSpent.__tablename__:
        print(f"Seeding only supports the default table name '{TimeSpent.__tablename__}'.")
        sys.exit(1)
    count = seed_primary(settings.primary_db)
    print(f"Seeded {settings.primary_db} with {count} sample entries.")
    if settings.reference_db:
        count = seed_reference(settings.reference_db)
        print(f"Seeded {settings.reference_db} with {count} sample projects.")
