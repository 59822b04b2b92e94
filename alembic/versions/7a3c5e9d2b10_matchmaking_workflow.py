"""users, requests, locks, couples and notifications

Revision ID: 7a3c5e9d2b10
Revises:
Create Date: 2026-10-19 09:00:00

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7a3c5e9d2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_status = sa.Enum(
    "available", "locked", "mark_married", "married", name="userstatus"
)
request_status = sa.Enum(
    "asked", "accepted", "declined", "withdrawn", name="requeststatus"
)
lock_outcome = sa.Enum("withdrawn", "married", "rejected", name="lockoutcome")
notification_kind = sa.Enum(
    "request_received",
    "request_accepted",
    "confirm_success_requested",
    "success_declined",
    "married",
    "confirm_reject_requested",
    "lock_rejected",
    "lock_withdrawn",
    name="notificationkind",
)


def upgrade() -> None:
    # user.lock_id references lock, which references user; the FK is added last
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column(
            "status",
            user_status,
            nullable=False,
            server_default="available",
        ),
        sa.Column("lock_id", sa.Integer(), nullable=True),
        sa.Column("subscription_expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_user_email"),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=False)
    op.create_index("ix_user_lock_id", "user", ["lock_id"], unique=False)

    op.create_table(
        "request",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("from_id", sa.Integer(), nullable=False),
        sa.Column("to_id", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            request_status,
            nullable=False,
            server_default="asked",
        ),
        sa.Column("asked_date", sa.Date(), nullable=False),
        sa.Column("approved_date", sa.Date(), nullable=True),
        sa.Column("rejected_date", sa.Date(), nullable=True),
        sa.Column("withdraw_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["from_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["to_id"], ["user.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_request_from_id", "request", ["from_id"], unique=False)
    op.create_index("ix_request_to_id", "request", ["to_id"], unique=False)
    op.create_index(
        "uq_request_open_pair",
        "request",
        ["from_id", "to_id"],
        unique=True,
        sqlite_where=sa.text("status = 'asked'"),
        postgresql_where=sa.text("status = 'asked'"),
    )

    op.create_table(
        "lock",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("one_id", sa.Integer(), nullable=False),
        sa.Column("another_id", sa.Integer(), nullable=False),
        sa.Column("request_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("withdrawn_at", sa.DateTime(), nullable=True),
        sa.Column("withdrawn_by_id", sa.Integer(), nullable=True),
        sa.Column("reject_requested_by_id", sa.Integer(), nullable=True),
        sa.Column("reject_requested_at", sa.DateTime(), nullable=True),
        sa.Column("outcome", lock_outcome, nullable=True),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["one_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["another_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["request_id"], ["request.id"]),
        sa.ForeignKeyConstraint(["withdrawn_by_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["reject_requested_by_id"], ["user.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lock_one_id", "lock", ["one_id"], unique=False)
    op.create_index("ix_lock_another_id", "lock", ["another_id"], unique=False)
    op.create_index("ix_lock_is_active", "lock", ["is_active"], unique=False)

    with op.batch_alter_table("user") as batch_op:
        batch_op.create_foreign_key("fk_user_lock_id", "lock", ["lock_id"], ["id"])

    op.create_table(
        "couple",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("one_id", sa.Integer(), nullable=False),
        sa.Column("another_id", sa.Integer(), nullable=False),
        sa.Column("lock_id", sa.Integer(), nullable=False),
        sa.Column("married_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["one_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["another_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["lock_id"], ["lock.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lock_id"),
    )
    op.create_index("ix_couple_one_id", "couple", ["one_id"], unique=False)
    op.create_index("ix_couple_another_id", "couple", ["another_id"], unique=False)

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("kind", notification_kind, nullable=False),
        sa.Column("from_user_id", sa.Integer(), nullable=False),
        sa.Column("lock_id", sa.Integer(), nullable=True),
        sa.Column("request_id", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["from_user_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["lock_id"], ["lock.id"]),
        sa.ForeignKeyConstraint(["request_id"], ["request.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notification_user_id", "notification", ["user_id"], unique=False
    )
    op.create_index(
        "ix_notification_user_id_created_at_desc",
        "notification",
        ["user_id", sa.text("created_at DESC")],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_notification_user_id_created_at_desc", table_name="notification")
    op.drop_index("ix_notification_user_id", table_name="notification")
    op.drop_table("notification")

    op.drop_index("ix_couple_another_id", table_name="couple")
    op.drop_index("ix_couple_one_id", table_name="couple")
    op.drop_table("couple")

    with op.batch_alter_table("user") as batch_op:
        batch_op.drop_constraint("fk_user_lock_id", type_="foreignkey")

    op.drop_index("ix_lock_is_active", table_name="lock")
    op.drop_index("ix_lock_another_id", table_name="lock")
    op.drop_index("ix_lock_one_id", table_name="lock")
    op.drop_table("lock")

    op.drop_index("uq_request_open_pair", table_name="request")
    op.drop_index("ix_request_to_id", table_name="request")
    op.drop_index("ix_request_from_id", table_name="request")
    op.drop_table("request")

    op.drop_index("ix_user_lock_id", table_name="user")
    op.drop_index("ix_user_email", table_name="user")
    op.drop_table("user")

    for enum in (notification_kind, lock_outcome, request_status, user_status):
        enum.drop(op.get_bind(), checkfirst=True)
