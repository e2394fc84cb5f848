from pathlib import Path

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    sql_path = (
        Path(__file__).resolve().parents[2] / "sql" / "create_hot_store_schema.sql"
    )
    op.execute(sql_path.read_text())


def downgrade() -> None:
    op.execute(
        "DROP TABLE IF EXISTS bork_raw_data, eitje_raw_data, "
        "bork_aggregated, eitje_aggregated"
    )
