"""create core tables

Revision ID: 20261019_0001
Revises: 
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _fk_users(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)


def _fk_pairings() -> sa.Column:
    return sa.Column("pairing_id", sa.Integer(), sa.ForeignKey("pairings.id", ondelete="CASCADE"), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=32), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("deadline", sa.String(length=5), nullable=True),
        sa.Column("last_deadline_update", sa.DateTime(), nullable=True),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("rating", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_pairs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tg_chat_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("tg_chat_id", name="uq_users_tg_chat_id"),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_timezone", "users", ["timezone"], unique=False)
    op.create_index("ix_users_is_available", "users", ["is_available"], unique=False)

    op.create_table(
        "auth_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("token", sa.String(length=128), nullable=False),
        _fk_users("user_id"),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_auth_sessions_token", "auth_sessions", ["token"], unique=True)
    op.create_index("ix_auth_sessions_user_id", "auth_sessions", ["user_id"], unique=False)

    op.create_table(
        "telegram_link_codes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=32), nullable=False),
        _fk_users("user_id"),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("used_by_chat_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_telegram_link_codes_code", "telegram_link_codes", ["code"], unique=True)
    op.create_index("ix_telegram_link_codes_user_id", "telegram_link_codes", ["user_id"], unique=False)

    op.create_table(
        "pairing_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk_users("from_user_id"),
        _fk_users("to_user_id"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_pairing_requests_from_user_id", "pairing_requests", ["from_user_id"], unique=False)
    op.create_index("ix_pairing_requests_to_user_id", "pairing_requests", ["to_user_id"], unique=False)
    op.create_index("ix_pairing_requests_status", "pairing_requests", ["status"], unique=False)

    op.create_table(
        "pairings",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk_users("user1_id"),
        _fk_users("user2_id"),
        sa.Column("request_id", sa.Integer(), nullable=True),
        sa.Column("cycle_date", sa.Date(), nullable=False),
        sa.Column("settled_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("request_id", name="uq_pairings_request_id"),
    )
    op.create_index("ix_pairings_user1_id", "pairings", ["user1_id"], unique=False)
    op.create_index("ix_pairings_user2_id", "pairings", ["user2_id"], unique=False)
    op.create_index("ix_pairings_cycle_date", "pairings", ["cycle_date"], unique=False)

    op.create_table(
        "planned_tasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk_pairings(),
        _fk_users("user_id"),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="planned"),
        sa.Column("cycle_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("pairing_id", "user_id", "cycle_date", name="uq_planned_task_per_day"),
    )
    op.create_index("ix_planned_tasks_pairing_id", "planned_tasks", ["pairing_id"], unique=False)
    op.create_index("ix_planned_tasks_user_id", "planned_tasks", ["user_id"], unique=False)
    op.create_index("ix_planned_tasks_cycle_date", "planned_tasks", ["cycle_date"], unique=False)

    op.create_table(
        "completed_tasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk_pairings(),
        _fk_users("user_id"),
        sa.Column(
            "planned_task_id",
            sa.Integer(),
            sa.ForeignKey("planned_tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("file_url", sa.String(length=512), nullable=True),
        sa.Column("file_type", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="completed"),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verification_result", sa.String(length=16), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("cycle_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("pairing_id", "user_id", "cycle_date", name="uq_completed_task_per_day"),
    )
    op.create_index("ix_completed_tasks_pairing_id", "completed_tasks", ["pairing_id"], unique=False)
    op.create_index("ix_completed_tasks_user_id", "completed_tasks", ["user_id"], unique=False)
    op.create_index("ix_completed_tasks_planned_task_id", "completed_tasks", ["planned_task_id"], unique=False)
    op.create_index("ix_completed_tasks_cycle_date", "completed_tasks", ["cycle_date"], unique=False)

    op.create_table(
        "verifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk_pairings(),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("completed_tasks.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "planned_task_id",
            sa.Integer(),
            sa.ForeignKey("planned_tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _fk_users("verifier_id"),
        _fk_users("verified_user_id"),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        sa.Column("cycle_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("pairing_id", "verifier_id", "cycle_date", name="uq_verification_per_day"),
    )
    op.create_index("ix_verifications_pairing_id", "verifications", ["pairing_id"], unique=False)
    op.create_index("ix_verifications_task_id", "verifications", ["task_id"], unique=False)
    op.create_index("ix_verifications_verifier_id", "verifications", ["verifier_id"], unique=False)
    op.create_index("ix_verifications_verified_user_id", "verifications", ["verified_user_id"], unique=False)
    op.create_index("ix_verifications_cycle_date", "verifications", ["cycle_date"], unique=False)

    op.create_table(
        "rating_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk_users("user_id"),
        sa.Column("pairing_id", sa.Integer(), nullable=False),
        sa.Column("cycle_date", sa.Date(), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=32), nullable=False),
        sa.Column("rating_after", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_rating_events_user_id", "rating_events", ["user_id"], unique=False)
    op.create_index("ix_rating_events_pairing_id", "rating_events", ["pairing_id"], unique=False)
    op.create_index("ix_rating_events_cycle_date", "rating_events", ["cycle_date"], unique=False)
    op.create_index("ix_rating_events_created_at", "rating_events", ["created_at"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        _fk_users("user_id"),
        sa.Column("kind", sa.String(length=32), nullable=False, server_default="rating"),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("delivered_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"], unique=False)

    op.create_table(
        "rate_limit_windows",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("window_start", sa.DateTime(), nullable=False),
        sa.Column("last_request", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("key", name="uq_rate_limit_window_key"),
    )
    op.create_index("ix_rate_limit_windows_key", "rate_limit_windows", ["key"], unique=False)
    op.create_index("ix_rate_limit_windows_window_start", "rate_limit_windows", ["window_start"], unique=False)

    op.create_table(
        "rate_limit_blocks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("reason", sa.String(length=64), nullable=False, server_default="Rate limit exceeded"),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("key", name="uq_rate_limit_block_key"),
    )
    op.create_index("ix_rate_limit_blocks_key", "rate_limit_blocks", ["key"], unique=False)
    op.create_index("ix_rate_limit_blocks_expires_at", "rate_limit_blocks", ["expires_at"], unique=False)

    op.create_table(
        "ip_reputation",
        sa.Column("ip", sa.String(length=64), primary_key=True),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("block_expires_at", sa.DateTime(), nullable=True),
        sa.Column("last_updated", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("ip_reputation")
    op.drop_index("ix_rate_limit_blocks_expires_at", table_name="rate_limit_blocks")
    op.drop_index("ix_rate_limit_blocks_key", table_name="rate_limit_blocks")
    op.drop_table("rate_limit_blocks")
    op.drop_index("ix_rate_limit_windows_window_start", table_name="rate_limit_windows")
    op.drop_index("ix_rate_limit_windows_key", table_name="rate_limit_windows")
    op.drop_table("rate_limit_windows")
    op.drop_index("ix_notifications_created_at", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_rating_events_created_at", table_name="rating_events")
    op.drop_index("ix_rating_events_cycle_date", table_name="rating_events")
    op.drop_index("ix_rating_events_pairing_id", table_name="rating_events")
    op.drop_index("ix_rating_events_user_id", table_name="rating_events")
    op.drop_table("rating_events")
    op.drop_index("ix_verifications_cycle_date", table_name="verifications")
    op.drop_index("ix_verifications_verified_user_id", table_name="verifications")
    op.drop_index("ix_verifications_verifier_id", table_name="verifications")
    op.drop_index("ix_verifications_task_id", table_name="verifications")
    op.drop_index("ix_verifications_pairing_id", table_name="verifications")
    op.drop_table("verifications")
    op.drop_index("ix_completed_tasks_cycle_date", table_name="completed_tasks")
    op.drop_index("ix_completed_tasks_planned_task_id", table_name="completed_tasks")
    op.drop_index("ix_completed_tasks_user_id", table_name="completed_tasks")
    op.drop_index("ix_completed_tasks_pairing_id", table_name="completed_tasks")
    op.drop_table("completed_tasks")
    op.drop_index("ix_planned_tasks_cycle_date", table_name="planned_tasks")
    op.drop_index("ix_planned_tasks_user_id", table_name="planned_tasks")
    op.drop_index("ix_planned_tasks_pairing_id", table_name="planned_tasks")
    op.drop_table("planned_tasks")
    op.drop_index("ix_pairings_cycle_date", table_name="pairings")
    op.drop_index("ix_pairings_user2_id", table_name="pairings")
    op.drop_index("ix_pairings_user1_id", table_name="pairings")
    op.drop_table("pairings")
    op.drop_index("ix_pairing_requests_status", table_name="pairing_requests")
    op.drop_index("ix_pairing_requests_to_user_id", table_name="pairing_requests")
    op.drop_index("ix_pairing_requests_from_user_id", table_name="pairing_requests")
    op.drop_table("pairing_requests")
    op.drop_index("ix_telegram_link_codes_user_id", table_name="telegram_link_codes")
    op.drop_index("ix_telegram_link_codes_code", table_name="telegram_link_codes")
    op.drop_table("telegram_link_codes")
    op.drop_index("ix_auth_sessions_user_id", table_name="auth_sessions")
    op.drop_index("ix_auth_sessions_token", table_name="auth_sessions")
    op.drop_table("auth_sessions")
    op.drop_index("ix_users_is_available", table_name="users")
    op.drop_index("ix_users_timezone", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
