"""initial_schema

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2026-10-12

Initial schema for the Baseline Monitor: apis, endpoints, probes, baselines.
Every child table cascades on API deletion.  Baselines carry a nullable
`retired_at` set by the explicit retire action.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1a9c2e7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── apis ───────────────────────────────────────────────────────────────────
    op.create_table(
        "apis",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("base_url", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )

    # ── endpoints ──────────────────────────────────────────────────────────────
    op.create_table(
        "endpoints",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("api_id", sa.Integer(), sa.ForeignKey("apis.id", ondelete="CASCADE"), nullable=False),
        sa.Column("path", sa.String(), nullable=False),
        sa.Column("method", sa.String(), nullable=False),
        sa.Column("expected_status", sa.Integer(), nullable=False),
        sa.Column("expected_fields", sa.JSON(), nullable=True),
        sa.Column("body_fixture_params", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("api_id", "path", "method", name="uq_endpoint_api_path_method"),
    )
    op.create_index("ix_endpoints_api_id", "endpoints", ["api_id"])

    # ── probes ─────────────────────────────────────────────────────────────────
    op.create_table(
        "probes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("api_id", sa.Integer(), sa.ForeignKey("apis.id", ondelete="CASCADE"), nullable=False),
        sa.Column("endpoint_id", sa.Integer(), sa.ForeignKey("endpoints.id", ondelete="CASCADE"), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("status_code", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("response_type", sa.String(), nullable=False),
        sa.Column("latency_bucket", sa.String(), nullable=False),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_probes_api_id", "probes", ["api_id"])
    op.create_index("ix_probes_endpoint_id", "probes", ["endpoint_id"])
    op.create_index("ix_probes_created_at", "probes", ["created_at"])

    # ── baselines ──────────────────────────────────────────────────────────────
    op.create_table(
        "baselines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("api_id", sa.Integer(), sa.ForeignKey("apis.id", ondelete="CASCADE"), nullable=False),
        sa.Column("endpoint_id", sa.Integer(), sa.ForeignKey("endpoints.id", ondelete="CASCADE"), nullable=False),
        sa.Column("probe_id", sa.Integer(), sa.ForeignKey("probes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("retired_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_baselines_api_id", "baselines", ["api_id"])
    op.create_index("ix_baselines_endpoint_id", "baselines", ["endpoint_id"])
    op.create_index("ix_baselines_probe_id", "baselines", ["probe_id"])
    op.create_index("ix_baselines_created_at", "baselines", ["created_at"])


def downgrade() -> None:
    op.drop_table("baselines")
    op.drop_table("probes")
    op.drop_table("endpoints")
    op.drop_table("apis")
