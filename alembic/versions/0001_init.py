"""Migração inicial: regras de segurança, limiares, escalonamento, settings e auditoria."""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "safety_rules",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("rule_type", sa.String(50), nullable=False),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("action", sa.String(50), nullable=False, server_default="block"),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True)),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True)),
    )
    op.create_index("ix_safety_rules_type_enabled", "safety_rules", ["rule_type", "enabled"])
    op.create_table(
        "moderation_settings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("category", sa.String(50), nullable=False, unique=True),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("threshold", sa.Float, nullable=False, server_default="0.7"),
        sa.Column("action", sa.String(50), nullable=False, server_default="block"),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True)),
    )
    op.create_table(
        "escalation_settings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("category", sa.String(50), nullable=False, unique=True),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("keywords", sa.JSON(), nullable=False),
        sa.Column("response_template", sa.Text(), nullable=True),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True)),
    )
    op.create_table(
        "system_settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value", sa.JSON(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True)),
    )
    op.create_table(
        "safety_decisions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("stage", sa.String(32), nullable=False),
        sa.Column("verdict", sa.JSON(), nullable=False),
        sa.Column("input_preview", sa.String(100), nullable=False, server_default=""),
        sa.Column("trace_id", sa.String(64), nullable=False, server_default="-"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True)),
    )

def downgrade() -> None:
    op.drop_table("safety_decisions")
    op.drop_table("system_settings")
    op.drop_table("escalation_settings")
    op.drop_table("moderation_settings")
    op.drop_index("ix_safety_rules_type_enabled", table_name="safety_rules")
    op.drop_table("safety_rules")
