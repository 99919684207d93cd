"""inventory engine schema

Revision ID: 20261018_01
Revises: 
Create Date: 2026-10-18 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261018_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index(op.f("ix_members_id"), "members", ["id"], unique=False)

    op.create_table(
        "foods",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("name_en", sa.String(length=120), nullable=True),
        sa.Column("category", sa.String(length=40), nullable=False),
        sa.Column("calories", sa.Float(), nullable=False),
        sa.Column("protein", sa.Float(), nullable=False),
        sa.Column("carbs", sa.Float(), nullable=False),
        sa.Column("fat", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_foods_id"), "foods", ["id"], unique=False)
    op.create_index(op.f("ix_foods_name"), "foods", ["name"], unique=False)

    op.create_table(
        "recipes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=140), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=40), nullable=False),
        sa.Column("difficulty", sa.String(length=20), nullable=False),
        sa.Column("prep_time", sa.Integer(), nullable=False),
        sa.Column("cook_time", sa.Integer(), nullable=False),
        sa.Column("servings", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_recipes_id"), "recipes", ["id"], unique=False)

    op.create_table(
        "recipe_ingredients",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("recipe_id", sa.Integer(), nullable=False),
        sa.Column("food_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.String(length=120), nullable=True),
        sa.ForeignKeyConstraint(["food_id"], ["foods.id"]),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_recipe_ingredients_id"), "recipe_ingredients", ["id"], unique=False)
    op.create_index(op.f("ix_recipe_ingredients_recipe_id"), "recipe_ingredients", ["recipe_id"], unique=False)

    op.create_table(
        "recipe_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("recipe_id", sa.Integer(), nullable=False),
        sa.Column("servings", sa.Integer(), nullable=False),
        sa.Column("cooked_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_recipe_history_id"), "recipe_history", ["id"], unique=False)
    op.create_index(op.f("ix_recipe_history_member_id"), "recipe_history", ["member_id"], unique=False)
    op.create_index(op.f("ix_recipe_history_cooked_at"), "recipe_history", ["cooked_at"], unique=False)

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("food_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("original_quantity", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(length=20), nullable=False),
        sa.Column("purchase_price", sa.Float(), nullable=True),
        sa.Column("purchase_source", sa.String(length=120), nullable=True),
        sa.Column("expiry_date", sa.DateTime(), nullable=True),
        sa.Column("production_date", sa.DateTime(), nullable=True),
        sa.Column("days_to_expiry", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("is_low_stock", sa.Boolean(), nullable=False),
        sa.Column("min_stock_threshold", sa.Float(), nullable=True),
        sa.Column("storage_location", sa.String(length=20), nullable=False),
        sa.Column("storage_notes", sa.Text(), nullable=True),
        sa.Column("barcode", sa.String(length=64), nullable=True),
        sa.Column("brand", sa.String(length=80), nullable=True),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["food_id"], ["foods.id"]),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_inventory_items_id"), "inventory_items", ["id"], unique=False)
    op.create_index(op.f("ix_inventory_items_member_id"), "inventory_items", ["member_id"], unique=False)
    op.create_index(op.f("ix_inventory_items_food_id"), "inventory_items", ["food_id"], unique=False)
    op.create_index(op.f("ix_inventory_items_expiry_date"), "inventory_items", ["expiry_date"], unique=False)
    op.create_index(op.f("ix_inventory_items_status"), "inventory_items", ["status"], unique=False)
    op.create_index(op.f("ix_inventory_items_deleted_at"), "inventory_items", ["deleted_at"], unique=False)

    op.create_table(
        "inventory_usages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("used_quantity", sa.Float(), nullable=False),
        sa.Column("reason", sa.String(length=20), nullable=False),
        sa.Column("meal_id", sa.Integer(), nullable=True),
        sa.Column("recipe_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_inventory_usages_id"), "inventory_usages", ["id"], unique=False)
    op.create_index(op.f("ix_inventory_usages_item_id"), "inventory_usages", ["item_id"], unique=False)
    op.create_index(op.f("ix_inventory_usages_member_id"), "inventory_usages", ["member_id"], unique=False)
    op.create_index(op.f("ix_inventory_usages_created_at"), "inventory_usages", ["created_at"], unique=False)

    op.create_table(
        "waste_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("wasted_quantity", sa.Float(), nullable=False),
        sa.Column("waste_reason", sa.String(length=20), nullable=False),
        sa.Column("estimated_cost", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("preventable", sa.Boolean(), nullable=False),
        sa.Column("prevention_tip", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_waste_logs_id"), "waste_logs", ["id"], unique=False)
    op.create_index(op.f("ix_waste_logs_item_id"), "waste_logs", ["item_id"], unique=False)
    op.create_index(op.f("ix_waste_logs_member_id"), "waste_logs", ["member_id"], unique=False)
    op.create_index(op.f("ix_waste_logs_created_at"), "waste_logs", ["created_at"], unique=False)

    op.create_table(
        "notification_configs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("expiry_alert_enabled", sa.Boolean(), nullable=False),
        sa.Column("expiry_advance_days", sa.JSON(), nullable=False),
        sa.Column("expiry_alert_frequency", sa.String(length=20), nullable=False),
        sa.Column("low_stock_alert_enabled", sa.Boolean(), nullable=False),
        sa.Column("low_stock_threshold", sa.Float(), nullable=False),
        sa.Column("low_stock_alert_frequency", sa.String(length=20), nullable=False),
        sa.Column("waste_report_enabled", sa.Boolean(), nullable=False),
        sa.Column("waste_report_frequency", sa.String(length=20), nullable=False),
        sa.Column("usage_reminder_enabled", sa.Boolean(), nullable=False),
        sa.Column("usage_reminder_frequency", sa.String(length=20), nullable=False),
        sa.Column("purchase_suggestion_enabled", sa.Boolean(), nullable=False),
        sa.Column("purchase_suggestion_frequency", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_notification_configs_id"), "notification_configs", ["id"], unique=False)
    op.create_index(op.f("ix_notification_configs_member_id"), "notification_configs", ["member_id"], unique=True)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(length=10), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("dedup_key", sa.String(length=64), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_notifications_id"), "notifications", ["id"], unique=False)
    op.create_index(op.f("ix_notifications_member_id"), "notifications", ["member_id"], unique=False)
    op.create_index(op.f("ix_notifications_type"), "notifications", ["type"], unique=False)
    op.create_index(op.f("ix_notifications_dedup_key"), "notifications", ["dedup_key"], unique=False)
    op.create_index(op.f("ix_notifications_is_read"), "notifications", ["is_read"], unique=False)
    op.create_index(op.f("ix_notifications_created_at"), "notifications", ["created_at"], unique=False)

    op.create_table(
        "shopping_lists",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=140), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("budget", sa.Float(), nullable=True),
        sa.Column("estimated_cost", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_shopping_lists_id"), "shopping_lists", ["id"], unique=False)
    op.create_index(op.f("ix_shopping_lists_member_id"), "shopping_lists", ["member_id"], unique=False)

    op.create_table(
        "shopping_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("list_id", sa.Integer(), nullable=False),
        sa.Column("food_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(length=20), nullable=False),
        sa.Column("category", sa.String(length=40), nullable=True),
        sa.Column("estimated_price", sa.Float(), nullable=True),
        sa.Column("is_purchased", sa.Boolean(), nullable=False),
        sa.Column("purchased_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["food_id"], ["foods.id"]),
        sa.ForeignKeyConstraint(["list_id"], ["shopping_lists.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_shopping_items_id"), "shopping_items", ["id"], unique=False)
    op.create_index(op.f("ix_shopping_items_list_id"), "shopping_items", ["list_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_shopping_items_list_id"), table_name="shopping_items")
    op.drop_index(op.f("ix_shopping_items_id"), table_name="shopping_items")
    op.drop_table("shopping_items")

    op.drop_index(op.f("ix_shopping_lists_member_id"), table_name="shopping_lists")
    op.drop_index(op.f("ix_shopping_lists_id"), table_name="shopping_lists")
    op.drop_table("shopping_lists")

    op.drop_index(op.f("ix_notifications_created_at"), table_name="notifications")
    op.drop_index(op.f("ix_notifications_is_read"), table_name="notifications")
    op.drop_index(op.f("ix_notifications_dedup_key"), table_name="notifications")
    op.drop_index(op.f("ix_notifications_type"), table_name="notifications")
    op.drop_index(op.f("ix_notifications_member_id"), table_name="notifications")
    op.drop_index(op.f("ix_notifications_id"), table_name="notifications")
    op.drop_table("notifications")

    op.drop_index(op.f("ix_notification_configs_member_id"), table_name="notification_configs")
    op.drop_index(op.f("ix_notification_configs_id"), table_name="notification_configs")
    op.drop_table("notification_configs")

    op.drop_index(op.f("ix_waste_logs_created_at"), table_name="waste_logs")
    op.drop_index(op.f("ix_waste_logs_member_id"), table_name="waste_logs")
    op.drop_index(op.f("ix_waste_logs_item_id"), table_name="waste_logs")
    op.drop_index(op.f("ix_waste_logs_id"), table_name="waste_logs")
    op.drop_table("waste_logs")

    op.drop_index(op.f("ix_inventory_usages_created_at"), table_name="inventory_usages")
    op.drop_index(op.f("ix_inventory_usages_member_id"), table_name="inventory_usages")
    op.drop_index(op.f("ix_inventory_usages_item_id"), table_name="inventory_usages")
    op.drop_index(op.f("ix_inventory_usages_id"), table_name="inventory_usages")
    op.drop_table("inventory_usages")

    op.drop_index(op.f("ix_inventory_items_deleted_at"), table_name="inventory_items")
    op.drop_index(op.f("ix_inventory_items_status"), table_name="inventory_items")
    op.drop_index(op.f("ix_inventory_items_expiry_date"), table_name="inventory_items")
    op.drop_index(op.f("ix_inventory_items_food_id"), table_name="inventory_items")
    op.drop_index(op.f("ix_inventory_items_member_id"), table_name="inventory_items")
    op.drop_index(op.f("ix_inventory_items_id"), table_name="inventory_items")
    op.drop_table("inventory_items")

    op.drop_index(op.f("ix_recipe_history_cooked_at"), table_name="recipe_history")
    op.drop_index(op.f("ix_recipe_history_member_id"), table_name="recipe_history")
    op.drop_index(op.f("ix_recipe_history_id"), table_name="recipe_history")
    op.drop_table("recipe_history")

    op.drop_index(op.f("ix_recipe_ingredients_recipe_id"), table_name="recipe_ingredients")
    op.drop_index(op.f("ix_recipe_ingredients_id"), table_name="recipe_ingredients")
    op.drop_table("recipe_ingredients")

    op.drop_index(op.f("ix_recipes_id"), table_name="recipes")
    op.drop_table("recipes")

    op.drop_index(op.f("ix_foods_name"), table_name="foods")
    op.drop_index(op.f("ix_foods_id"), table_name="foods")
    op.drop_table("foods")

    op.drop_index(op.f("ix_members_id"), table_name="members")
    op.drop_table("members")
