import importlib.util
from pathlib import Path

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

from holidayhouse.db.base import Base
import holidayhouse.db.models  # noqa: F401  (registers the tables)

MIGRATION = Path(__file__).resolve().parents[1] / "alembic" / "versions" / "0001_initial.py"


def _load_migration():
    spec = importlib.util.spec_from_file_location("migration_0001_initial", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_initial_migration_matches_the_models():
    migration = _load_migration()
    engine = sa.create_engine("sqlite://")

    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()

        inspector = sa.inspect(conn)
        assert set(inspector.get_table_names()) == set(Base.metadata.tables)
        for name, table in Base.metadata.tables.items():
            columns = {col["name"] for col in inspector.get_columns(name)}
            assert columns == set(table.columns.keys()), name

        with Operations.context(MigrationContext.configure(conn)):
            migration.downgrade()
        assert sa.inspect(conn).get_table_names() == []
