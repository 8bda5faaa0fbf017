"""create auth and onboarding tables

Revision ID: 3d9e2b7c1a40
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3d9e2b7c1a40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("phone_number", sa.String(length=34), nullable=True),
        sa.Column("phone_verified", sa.Boolean(), nullable=False),
        sa.Column("onboarding_completed", sa.Boolean(), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("last_sign_in", sa.DateTime(), nullable=True),
        sa.Column("token_version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_phone_number"), "users", ["phone_number"], unique=True)

    op.create_table(
        "sms_verification_codes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("phone_number", sa.String(length=34), nullable=False),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("phone_number", "code", name="uq_sms_verification_codes_phone_code"),
    )
    op.create_index(
        op.f("ix_sms_verification_codes_phone_number"), "sms_verification_codes", ["phone_number"], unique=False
    )
    op.create_index(
        op.f("ix_sms_verification_codes_expires_at"), "sms_verification_codes", ["expires_at"], unique=False
    )
    op.create_index(
        op.f("ix_sms_verification_codes_created_at"), "sms_verification_codes", ["created_at"], unique=False
    )

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(length=50), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("abbreviation", sa.String(length=10), nullable=False),
        sa.Column("logo_url", sa.String(length=500), nullable=True),
        sa.Column("primary_color", sa.String(length=7), nullable=True),
        sa.Column("secondary_color", sa.String(length=7), nullable=True),
        sa.Column("conference", sa.String(length=50), nullable=True),
        sa.Column("division", sa.String(length=50), nullable=True),
        sa.Column("founded", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id", "sport", name="uq_teams_external_id_sport"),
    )
    op.create_index(op.f("ix_teams_sport"), "teams", ["sport"], unique=False)

    op.create_table(
        "user_to_team",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("sport", sa.String(length=20), nullable=False),
        sa.Column("favorited_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "team_id", name="uq_user_to_team_user_team"),
    )
    op.create_index(op.f("ix_user_to_team_user_id"), "user_to_team", ["user_id"], unique=False)
    op.create_index(op.f("ix_user_to_team_team_id"), "user_to_team", ["team_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_user_to_team_team_id"), table_name="user_to_team")
    op.drop_index(op.f("ix_user_to_team_user_id"), table_name="user_to_team")
    op.drop_table("user_to_team")
    op.drop_index(op.f("ix_teams_sport"), table_name="teams")
    op.drop_table("teams")
    op.drop_index(op.f("ix_sms_verification_codes_created_at"), table_name="sms_verification_codes")
    op.drop_index(op.f("ix_sms_verification_codes_expires_at"), table_name="sms_verification_codes")
    op.drop_index(op.f("ix_sms_verification_codes_phone_number"), table_name="sms_verification_codes")
    op.drop_table("sms_verification_codes")
    op.drop_index(op.f("ix_users_phone_number"), table_name="users")
    op.drop_table("users")
