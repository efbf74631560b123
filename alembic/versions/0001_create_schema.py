from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(10, 2, asdecimal=False)


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=False, unique=True),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("avatar", sa.String(512), nullable=True),
        sa.Column("password", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "cities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("country", sa.String(255), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "accommodations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("rooms", sa.Integer(), nullable=False),
        sa.Column("price", MONEY, nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("city_id", sa.Integer(), sa.ForeignKey("cities.id", ondelete="SET NULL"), nullable=True),
        sa.Column("address", sa.String(512), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("package_name", sa.String(255), nullable=True),
        sa.Column("package_description", sa.Text(), nullable=True),
        sa.Column("package_images", sa.JSON(), nullable=False),
        sa.Column("adult_price", MONEY, nullable=False, server_default="0"),
        sa.Column("child_price", MONEY, nullable=False, server_default="0"),
        sa.Column("max_guests", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("max_person_villa", sa.Integer(), nullable=True),
        sa.Column("rate_person_villa", MONEY, nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_accommodations_owner_id", "accommodations", ["owner_id"], unique=False)

    op.create_table(
        "accommodation_amenities",
        sa.Column(
            "accommodation_id",
            sa.Integer(),
            sa.ForeignKey("accommodations.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("amenity_id", sa.Integer(), primary_key=True),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("guest_name", sa.String(255), nullable=False),
        sa.Column("guest_email", sa.String(255), nullable=True),
        sa.Column("guest_phone", sa.String(32), nullable=True),
        sa.Column("accommodation_id", sa.Integer(), sa.ForeignKey("accommodations.id"), nullable=False),
        sa.Column("package_id", sa.Integer(), nullable=True),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("adults", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("children", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rooms", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("food_veg", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("food_nonveg", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("food_jain", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_amount", MONEY, nullable=False),
        sa.Column("advance_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("discount", MONEY, nullable=False, server_default="0"),
        sa.Column("coupon_code", sa.String(64), nullable=True),
        sa.Column("payment_status", sa.String(16), nullable=False),
        sa.Column("payment_txn_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_bookings_guest_email", "bookings", ["guest_email"], unique=False)
    op.create_index("ix_bookings_accommodation_id", "bookings", ["accommodation_id"], unique=False)
    op.create_index("ix_bookings_check_in", "bookings", ["check_in"], unique=False)
    op.create_index("ix_bookings_payment_status", "bookings", ["payment_status"], unique=False)
    op.create_index("ix_bookings_payment_txn_id", "bookings", ["payment_txn_id"], unique=True)
    op.create_index("ix_bookings_created_at", "bookings", ["created_at"], unique=False)

    op.create_table(
        "blogs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=False),
        sa.Column("author", sa.String(255), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("read_time", sa.String(32), nullable=False),
        sa.Column("image", sa.String(512), nullable=True),
        sa.Column("category", sa.String(128), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_blogs_slug", "blogs", ["slug"], unique=True)
    op.create_index("ix_blogs_category", "blogs", ["category"], unique=False)
    op.create_index("ix_blogs_status", "blogs", ["status"], unique=False)


def downgrade():
    op.drop_index("ix_blogs_status", table_name="blogs")
    op.drop_index("ix_blogs_category", table_name="blogs")
    op.drop_index("ix_blogs_slug", table_name="blogs")
    op.drop_table("blogs")

    op.drop_index("ix_bookings_created_at", table_name="bookings")
    op.drop_index("ix_bookings_payment_txn_id", table_name="bookings")
    op.drop_index("ix_bookings_payment_status", table_name="bookings")
    op.drop_index("ix_bookings_check_in", table_name="bookings")
    op.drop_index("ix_bookings_accommodation_id", table_name="bookings")
    op.drop_index("ix_bookings_guest_email", table_name="bookings")
    op.drop_table("bookings")

    op.drop_table("accommodation_amenities")

    op.drop_index("ix_accommodations_owner_id", table_name="accommodations")
    op.drop_table("accommodations")

    op.drop_table("cities")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
