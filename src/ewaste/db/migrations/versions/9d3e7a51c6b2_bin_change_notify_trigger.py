"""bin change NOTIFY trigger

PostgreSQL LISTEN/NOTIFY feeds the realtime dashboard. Every insert or
update on bins fires pg_notify('bin_changed', ...); the API process
LISTENs on that channel and re-broadcasts the bin snapshot.

Revision ID: 9d3e7a51c6b2
Revises: 4b1f0c2e9a10
Create Date: 2026-10-18 09:31:02.550914
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '9d3e7a51c6b2'
down_revision: Union[str, None] = '4b1f0c2e9a10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION notify_bin_changed()
        RETURNS TRIGGER AS $$
        BEGIN
            PERFORM pg_notify('bin_changed', json_build_object(
                'bin_id', NEW.id,
                'sensor_id', NEW.sensor_id,
                'op', TG_OP
            )::text);
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    op.execute("""
        CREATE TRIGGER bin_change_notify
            AFTER INSERT OR UPDATE ON bins
            FOR EACH ROW
            EXECUTE FUNCTION notify_bin_changed();
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS bin_change_notify ON bins;")
    op.execute("DROP FUNCTION IF EXISTS notify_bin_changed;")
