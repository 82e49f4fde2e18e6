"""initial outings schema

Revision ID: a1f3e5c7d9b2
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "a1f3e5c7d9b2"
down_revision = None
branch_labels = None
depends_on = None

JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("username", sa.String(length=64), nullable=True),
        sa.Column("name", sa.String(length=128), nullable=True),
        sa.Column("handicap", sa.Float(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_players_external_id"), "players", ["external_id"], unique=True)
    op.create_index(op.f("ix_players_email"), "players", ["email"], unique=True)
    op.create_index(op.f("ix_players_username"), "players", ["username"], unique=True)

    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_player_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("street", sa.String(length=200), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=False),
        sa.Column("state", sa.String(length=100), nullable=True),
        sa.Column("country", sa.String(length=100), nullable=False),
        sa.Column("postal_code", sa.String(length=20), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("website", sa.String(length=300), nullable=True),
        sa.Column("holes", sa.Integer(), nullable=False),
        sa.Column("par", sa.Integer(), nullable=True),
        sa.Column("yardage", sa.Integer(), nullable=True),
        sa.Column("course_rating", sa.Float(), nullable=True),
        sa.Column("slope_rating", sa.Integer(), nullable=True),
        sa.Column("amenities", JSON_DOCUMENT, nullable=False),
        sa.Column("pricing", JSON_DOCUMENT, nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("images", JSON_DOCUMENT, nullable=False),
        sa.Column("rating_average", sa.Float(), nullable=False),
        sa.Column("rating_count", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["owner_player_id"],
            ["players.id"],
            name="fk_courses_owner_player_id_players",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_courses_id"), "courses", ["id"], unique=False)
    op.create_index(op.f("ix_courses_owner_player_id"), "courses", ["owner_player_id"], unique=False)
    op.create_index(op.f("ix_courses_name"), "courses", ["name"], unique=False)
    op.create_index(op.f("ix_courses_is_active"), "courses", ["is_active"], unique=False)
    op.create_index("ix_courses_lat_lon", "courses", ["latitude", "longitude"], unique=False)
    op.create_index("ix_courses_city_state", "courses", ["city", "state"], unique=False)

    op.create_table(
        "rounds",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("owner_player_id", sa.Integer(), nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=True),
        sa.Column("custom_course", JSON_DOCUMENT, nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("scheduled_time", sa.String(length=5), nullable=False),
        sa.Column("game_format", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("settings", JSON_DOCUMENT, nullable=False),
        sa.Column("teams", JSON_DOCUMENT, nullable=False),
        sa.Column("results", JSON_DOCUMENT, nullable=False),
        sa.Column("weather", JSON_DOCUMENT, nullable=True),
        sa.Column("invitations", JSON_DOCUMENT, nullable=False),
        sa.Column("comments", JSON_DOCUMENT, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["owner_player_id"],
            ["players.id"],
            name="fk_rounds_owner_player_id_players",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["course_id"],
            ["courses.id"],
            name="fk_rounds_course_id_courses",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_rounds_owner_player_id"), "rounds", ["owner_player_id"], unique=False)
    op.create_index(op.f("ix_rounds_course_id"), "rounds", ["course_id"], unique=False)
    op.create_index(op.f("ix_rounds_scheduled_date"), "rounds", ["scheduled_date"], unique=False)
    op.create_index(op.f("ix_rounds_game_format"), "rounds", ["game_format"], unique=False)
    op.create_index(op.f("ix_rounds_status"), "rounds", ["status"], unique=False)


def downgrade() -> None:
    op.drop_table("rounds")
    op.drop_table("courses")
    op.drop_index(op.f("ix_players_username"), table_name="players")
    op.drop_index(op.f("ix_players_email"), table_name="players")
    op.drop_index(op.f("ix_players_external_id"), table_name="players")
    op.drop_table("players")
