"""Initial booking schema: users, catalog, requests, coupons, usage ledger

Revision ID: 3b7e1c9a2f40
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b7e1c9a2f40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

request_type_enum = sa.Enum("REPAIR", "RENTAL", name="requesttype")
request_status_enum = sa.Enum(
    "PENDING",
    "WAITING_PAYMENT",
    "ARRANGING_DELIVERY",
    "ACTIVE",
    "ACTIVE_RENTAL",
    "COMPLETED",
    "REJECTED",
    "EXPIRED",
    name="requeststatus",
)
payment_method_enum = sa.Enum("ONLINE", "OFFLINE", name="paymentmethod")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("phone", sa.String(length=15), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("full_name", sa.String(length=100), nullable=False),
        sa.Column("role", sa.Enum("ADMIN", "USER", name="userrole"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)
    op.create_index("ix_users_phone", "users", ["phone"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "repair_services",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("special_instructions", sa.Text(), nullable=True),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_repair_services_id", "repair_services", ["id"], unique=False)

    op.create_table(
        "time_slots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(length=10), nullable=False),
        sa.Column("end_time", sa.String(length=10), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_time_slots_id", "time_slots", ["id"], unique=False)

    op.create_table(
        "service_mechanic_charge",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_service_mechanic_charge_id", "service_mechanic_charge", ["id"], unique=False)

    op.create_table(
        "bicycles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("model", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("specifications", sa.Text(), nullable=True),
        sa.Column("daily_rate", sa.Float(), nullable=False),
        sa.Column("weekly_rate", sa.Float(), nullable=False),
        sa.Column("delivery_charge", sa.Float(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bicycles_id", "bicycles", ["id"], unique=False)

    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.Enum("PERCENTAGE", "FIXED", name="discounttype"), nullable=False),
        sa.Column("discount_value", sa.Float(), nullable=False),
        sa.Column("min_amount", sa.Float(), nullable=False),
        sa.Column("max_discount", sa.Float(), nullable=True),
        sa.Column("applicable_items", sa.JSON(), nullable=False),
        sa.Column("usage_limit", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_coupons_id", "coupons", ["id"], unique=False)
    op.create_index("ix_coupons_code", "coupons", ["code"], unique=True)

    op.create_table(
        "repair_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("contact_number", sa.String(length=15), nullable=False),
        sa.Column("alternate_number", sa.String(length=15), nullable=True),
        sa.Column("email", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("preferred_date", sa.Date(), nullable=False),
        sa.Column("time_slot_id", sa.Integer(), nullable=False),
        sa.Column("mechanic_charge", sa.Float(), nullable=False),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("discount_amount", sa.Float(), nullable=False),
        sa.Column("net_amount", sa.Float(), nullable=False),
        sa.Column("coupon_code", sa.String(length=50), nullable=True),
        sa.Column("payment_method", payment_method_enum, nullable=False),
        sa.Column("status", request_status_enum, nullable=False),
        sa.Column("rejection_note", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["time_slot_id"], ["time_slots.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_repair_requests_id", "repair_requests", ["id"], unique=False)
    op.create_index("ix_repair_requests_user_id", "repair_requests", ["user_id"], unique=False)
    op.create_index("ix_repair_requests_status", "repair_requests", ["status"], unique=False)
    op.create_index("ix_repair_requests_created_at", "repair_requests", ["created_at"], unique=False)
    op.create_index(
        "ix_repair_requests_status_expires_at",
        "repair_requests",
        ["status", "expires_at"],
        unique=False,
    )

    op.create_table(
        "repair_request_services",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("repair_request_id", sa.Integer(), nullable=False),
        sa.Column("repair_service_id", sa.Integer(), nullable=False),
        sa.Column("service_name", sa.String(length=100), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["repair_request_id"], ["repair_requests.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["repair_service_id"], ["repair_services.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_repair_request_services_id", "repair_request_services", ["id"], unique=False)
    op.create_index(
        "ix_repair_request_services_repair_request_id",
        "repair_request_services",
        ["repair_request_id"],
        unique=False,
    )

    op.create_table(
        "rental_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("bicycle_id", sa.Integer(), nullable=False),
        sa.Column("contact_number", sa.String(length=15), nullable=False),
        sa.Column("alternate_number", sa.String(length=15), nullable=True),
        sa.Column("email", sa.String(length=100), nullable=True),
        sa.Column("delivery_address", sa.Text(), nullable=False),
        sa.Column("special_instructions", sa.Text(), nullable=True),
        sa.Column("duration_type", sa.Enum("DAILY", "WEEKLY", name="durationtype"), nullable=False),
        sa.Column("duration_count", sa.Integer(), nullable=False),
        sa.Column("rental_amount", sa.Float(), nullable=False),
        sa.Column("delivery_charge", sa.Float(), nullable=False),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("discount_amount", sa.Float(), nullable=False),
        sa.Column("net_amount", sa.Float(), nullable=False),
        sa.Column("coupon_code", sa.String(length=50), nullable=True),
        sa.Column("payment_method", payment_method_enum, nullable=False),
        sa.Column("status", request_status_enum, nullable=False),
        sa.Column("rejection_note", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("duration_count > 0", name="check_rental_duration_count_positive"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["bicycle_id"], ["bicycles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rental_requests_id", "rental_requests", ["id"], unique=False)
    op.create_index("ix_rental_requests_user_id", "rental_requests", ["user_id"], unique=False)
    op.create_index("ix_rental_requests_status", "rental_requests", ["status"], unique=False)
    op.create_index("ix_rental_requests_created_at", "rental_requests", ["created_at"], unique=False)
    op.create_index(
        "ix_rental_requests_status_expires_at",
        "rental_requests",
        ["status", "expires_at"],
        unique=False,
    )

    op.create_table(
        "coupon_usage",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("coupon_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("request_type", request_type_enum, nullable=False),
        sa.Column("request_id", sa.Integer(), nullable=False),
        sa.Column("discount_amount", sa.Float(), nullable=False),
        sa.Column("usage_slot", sa.Integer(), nullable=False),
        sa.Column("used_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("usage_slot >= 1", name="check_coupon_usage_slot_positive"),
        sa.ForeignKeyConstraint(["coupon_id"], ["coupons.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("coupon_id", "user_id", "usage_slot", name="uq_coupon_usage_user_slot"),
        sa.UniqueConstraint("request_type", "request_id", name="uq_coupon_usage_request"),
    )
    op.create_index("ix_coupon_usage_id", "coupon_usage", ["id"], unique=False)

    op.create_table(
        "request_status_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("request_type", request_type_enum, nullable=False),
        sa.Column("request_id", sa.Integer(), nullable=False),
        sa.Column("old_status", sa.String(length=50), nullable=True),
        sa.Column("new_status", sa.String(length=50), nullable=False),
        sa.Column("changed_by", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["changed_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_request_status_history_id", "request_status_history", ["id"], unique=False)
    op.create_index(
        "ix_request_status_history_request",
        "request_status_history",
        ["request_type", "request_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table("request_status_history")
    op.drop_table("coupon_usage")
    op.drop_table("rental_requests")
    op.drop_table("repair_request_services")
    op.drop_table("repair_requests")
    op.drop_table("coupons")
    op.drop_table("bicycles")
    op.drop_table("service_mechanic_charge")
    op.drop_table("time_slots")
    op.drop_table("repair_services")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_name in (
        "requeststatus",
        "requesttype",
        "paymentmethod",
        "durationtype",
        "discounttype",
        "userrole",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
