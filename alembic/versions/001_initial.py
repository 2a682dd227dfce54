"""Initial schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

import sqlalchemy as sa
from alembic import op

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- oauth2_sessions ---
    op.create_table(
        "oauth2_sessions",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("client_id", sa.String(255), nullable=True),
        sa.Column("state", sa.String(128), nullable=False),
        sa.Column("callback_state", sa.Text, nullable=False),
        sa.Column("callback_url", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_oauth2_sessions_created_at", "oauth2_sessions", ["created_at"])

    # --- oauth2_clients ---
    op.create_table(
        "oauth2_clients",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("secret", sa.String(255), nullable=False),
        sa.Column("redirect_uri", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_oauth2_clients_created_at", "oauth2_clients", ["created_at"])

    # --- oauth2_codes ---
    op.create_table(
        "oauth2_codes",
        sa.Column("id", sa.String(128), nullable=False),
        sa.Column("client_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", "client_id"),
    )
    op.create_index("ix_oauth2_codes_created_at", "oauth2_codes", ["created_at"])

    # --- tokens (legacy token table) ---
    op.create_table(
        "tokens",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("client_id", sa.String(255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_tokens_expires_at", "tokens", ["expires_at"])

    # --- user_tokens (primary token table) ---
    op.create_table(
        "user_tokens",
        sa.Column("token", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("client_id", sa.String(255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_user_tokens_expires_at", "user_tokens", ["expires_at"])

    # --- accounts ---
    op.create_table(
        "accounts",
        sa.Column("email", sa.String(320), primary_key=True),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_accounts_created_at", "accounts", ["created_at"])


def downgrade() -> None:
    op.drop_table("accounts")
    op.drop_table("user_tokens")
    op.drop_table("tokens")
    op.drop_table("oauth2_codes")
    op.drop_table("oauth2_clients")
    op.drop_table("oauth2_sessions")
