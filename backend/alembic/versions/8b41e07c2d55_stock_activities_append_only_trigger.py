"""stock_activities append-only trigger

Revision ID: 8b41e07c2d55
Revises: 3f2a9c1d7b10
Create Date: 2026-10-05
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8b41e07c2d55"
down_revision: Union[str, Sequence[str], None] = "3f2a9c1d7b10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TABLE_NAME = "stock_activities"
FUNCTION_NAME = "stock_activities_append_only"
TRIGGER_NAME = "trg_stock_activities_append_only"


def upgrade() -> None:
    # Même règle que les listeners ORM, mais pour le SQL brut.
    # Seul UPDATE toléré : item_id -> NULL (ON DELETE SET NULL de l'article).
    op.execute(
        f"""
        CREATE OR REPLACE FUNCTION {FUNCTION_NAME}()
        RETURNS TRIGGER AS $$
        BEGIN
            IF TG_OP = 'UPDATE'
               AND NEW.item_id IS NULL
               AND (to_jsonb(NEW) - 'item_id') = (to_jsonb(OLD) - 'item_id') THEN
                RETURN NEW;
            END IF;
            RAISE EXCEPTION 'stock_activities is append-only (% refused on id %)', TG_OP, OLD.id;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(f"DROP TRIGGER IF EXISTS {TRIGGER_NAME} ON {TABLE_NAME};")
    op.execute(
        f"""
        CREATE TRIGGER {TRIGGER_NAME}
        BEFORE UPDATE OR DELETE ON {TABLE_NAME}
        FOR EACH ROW EXECUTE FUNCTION {FUNCTION_NAME}();
        """
    )


def downgrade() -> None:
    op.execute(f"DROP TRIGGER IF EXISTS {TRIGGER_NAME} ON {TABLE_NAME};")
    op.execute(f"DROP FUNCTION IF EXISTS {FUNCTION_NAME}();")
