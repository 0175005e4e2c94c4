from alembic import op
import sqlalchemy as sa

revision = "0003_records"
down_revision = "0002_audit_logs"
branch_labels = None
depends_on = None

SINGLE_INDEXES = (
    "sl_no",
    "date",
    "mobile",
    "item_type",
    "item_category",
    "amount",
    "is_returned",
    "created_at",
    "deleted_at",
)

COMPOSITE_INDEXES = {
    "ix_records_returned_type": ["is_returned", "item_type"],
    "ix_records_returned_category": ["is_returned", "item_category"],
    "ix_records_returned_date": ["is_returned", "date"],
}


def upgrade():
    op.create_table(
        "records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sl_no", sa.String(length=64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=True),
        sa.Column("father_name", sa.String(length=128), nullable=True),
        sa.Column("street", sa.String(length=128), nullable=True),
        sa.Column("place", sa.String(length=128), nullable=True),
        sa.Column("mobile", sa.String(length=16), nullable=True),
        sa.Column("item", sa.String(length=255), nullable=True),
        sa.Column("item_type", sa.String(length=8), nullable=True),
        sa.Column("item_category", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("gold_weight_grams", sa.Numeric(10, 3), nullable=True),
        sa.Column("silver_weight_grams", sa.Numeric(10, 3), nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("interest", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("is_returned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("returned_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("returned_date", sa.DateTime(), nullable=True),
        sa.Column("person_image_url", sa.String(length=512), nullable=True),
        sa.Column("item_image_url", sa.String(length=512), nullable=True),
        sa.Column("item_return_image_url", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    for col in SINGLE_INDEXES:
        op.create_index(f"ix_records_{col}", "records", [col], unique=(col == "sl_no"))
    for name, cols in COMPOSITE_INDEXES.items():
        op.create_index(name, "records", cols)


def downgrade():
    for name in COMPOSITE_INDEXES:
        op.drop_index(name, table_name="records")
    for col in SINGLE_INDEXES:
        op.drop_index(f"ix_records_{col}", table_name="records")
    op.drop_table("records")
