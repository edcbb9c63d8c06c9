"""create agreements, otp verifications and agreement counters

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-18 09:12:44.418220
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f1c2a9b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


delivery_status_enum = sa.Enum(
    "PENDING",
    "GENERATING",
    "DELIVERED",
    "FAILED",
    name="deliverystatus",
    native_enum=False,
)
contact_type_enum = sa.Enum("EMAIL", "PHONE", name="contacttype", native_enum=False)
user_type_enum = sa.Enum("TENANT", "LANDLORD", name="usertype", native_enum=False)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "agreements",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("agreement_number", sa.String(length=32), nullable=False),
        sa.Column("tenant_full_name", sa.String(length=200), nullable=False),
        sa.Column("tenant_email", sa.String(length=255), nullable=False),
        sa.Column("tenant_phone", sa.String(length=32), nullable=False),
        sa.Column("tenant_dob", sa.Date(), nullable=False),
        sa.Column("tenant_address", sa.Text(), nullable=False),
        sa.Column("tenant_id_proof_url", sa.String(length=512), nullable=True),
        sa.Column("landlord_full_name", sa.String(length=200), nullable=False),
        sa.Column("landlord_email", sa.String(length=255), nullable=False),
        sa.Column("landlord_phone", sa.String(length=32), nullable=False),
        sa.Column("landlord_address", sa.Text(), nullable=False),
        sa.Column("landlord_id_proof_url", sa.String(length=512), nullable=True),
        sa.Column("property_address", sa.Text(), nullable=False),
        sa.Column("monthly_rent", sa.Numeric(12, 2), nullable=False),
        sa.Column("security_deposit", sa.Numeric(12, 2), nullable=True),
        sa.Column("lease_duration", sa.String(length=100), nullable=False),
        sa.Column("lease_start_date", sa.Date(), nullable=False),
        sa.Column("lease_end_date", sa.Date(), nullable=False),
        sa.Column("tenant_verified", sa.Boolean(), nullable=False),
        sa.Column("landlord_verified", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("pdf_url", sa.String(length=512), nullable=True),
        sa.Column("delivery_status", delivery_status_enum, nullable=False),
        sa.Column("delivery_attempts", sa.Integer(), nullable=False),
        sa.Column("delivery_error", sa.Text(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("agreement_number"),
    )
    op.create_index("ix_agreements_tenant_email", "agreements", ["tenant_email"])
    op.create_index("ix_agreements_landlord_email", "agreements", ["landlord_email"])
    op.create_index("ix_agreements_created_at", "agreements", ["created_at"])
    op.create_index("ix_agreements_delivery_status", "agreements", ["delivery_status"])

    op.create_table(
        "otp_verifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("agreement_id", sa.Uuid(), nullable=False),
        sa.Column("contact_info", sa.String(length=255), nullable=False),
        sa.Column("contact_type", contact_type_enum, nullable=False),
        sa.Column("user_type", user_type_enum, nullable=False),
        sa.Column("otp_code", sa.String(length=6), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["agreement_id"], ["agreements.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_otp_verifications_agreement_id", "otp_verifications", ["agreement_id"]
    )
    op.create_index(
        "ix_otp_verifications_expires_at", "otp_verifications", ["expires_at"]
    )
    op.create_index(
        "ix_otp_verifications_binding",
        "otp_verifications",
        ["agreement_id", "contact_info", "user_type"],
    )

    op.create_table(
        "agreement_counters",
        sa.Column("year", sa.String(length=4), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("year"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("agreement_counters")
    op.drop_index("ix_otp_verifications_binding", table_name="otp_verifications")
    op.drop_index("ix_otp_verifications_expires_at", table_name="otp_verifications")
    op.drop_index("ix_otp_verifications_agreement_id", table_name="otp_verifications")
    op.drop_table("otp_verifications")
    op.drop_index("ix_agreements_delivery_status", table_name="agreements")
    op.drop_index("ix_agreements_created_at", table_name="agreements")
    op.drop_index("ix_agreements_landlord_email", table_name="agreements")
    op.drop_index("ix_agreements_tenant_email", table_name="agreements")
    op.drop_table("agreements")
