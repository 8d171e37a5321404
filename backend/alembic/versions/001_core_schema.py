"""Core Schema - Sprout ERP

Revision ID: 001
Revises:
Create Date: 2026-10-18

Erstellt Stammdaten, Verbrauchsmaterial-Journal, Fertigwaren-Chargen,
Anbau (Rezepte, Crops, Phasenwechsel, Aufgaben), Anbaupläne, Kunden, Aufträge
und das Aktivitätsprotokoll.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()'))


def _lookup_columns():
    return [
        _uuid_pk(),
        sa.Column('code', sa.String(30), nullable=False, unique=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('color', sa.String(20)),
        sa.Column('sort_order', sa.Integer, server_default='0'),
        sa.Column('is_active', sa.Boolean, server_default='true'),
    ]


def upgrade() -> None:
    # ============================================================
    # STAMMDATEN
    # ============================================================

    op.create_table(
        'crop_stages',
        *_lookup_columns(),
        sa.Column('typical_duration_days', sa.Integer),
        sa.Column('requires_light', sa.Boolean, server_default='false'),
        sa.Column('requires_watering', sa.Boolean, server_default='true'),
    )
    op.create_table('consumable_types', *_lookup_columns())
    op.create_table(
        'consumable_units',
        *_lookup_columns(),
        sa.Column('symbol', sa.String(10), nullable=False),
        sa.Column('category', sa.String(20), nullable=False),  # WEIGHT, VOLUME, COUNT
        sa.Column('conversion_factor', sa.Numeric(15, 6), server_default='1'),
    )
    op.create_table('product_stock_statuses', *_lookup_columns())
    op.create_table('inventory_reservation_statuses', *_lookup_columns())
    op.create_table('payment_statuses', *_lookup_columns())
    op.create_table(
        'unified_order_statuses',
        *_lookup_columns(),
        sa.Column('stage', sa.String(20), nullable=False),  # PRE_PRODUCTION, PRODUCTION, FULFILLMENT, FINAL
        sa.Column('allows_modifications', sa.Boolean, server_default='false'),
        sa.Column('is_final', sa.Boolean, server_default='false'),
    )
    op.create_table(
        'customer_types',
        *_lookup_columns(),
        sa.Column('qualifies_for_wholesale', sa.Boolean, server_default='false'),
    )

    # ============================================================
    # VERBRAUCHSMATERIAL
    # ============================================================

    op.create_table(
        'consumables',
        _uuid_pk(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('consumable_type_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('consumable_types.id'), nullable=False),
        sa.Column('consumable_unit_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('consumable_units.id'), nullable=False),
        sa.Column('lot_no', sa.String(50), index=True),
        sa.Column('supplier_name', sa.String(200)),
        sa.Column('initial_stock', sa.Numeric(12, 3), server_default='0'),
        sa.Column('consumed_quantity', sa.Numeric(12, 3), server_default='0'),
        sa.Column('total_quantity', sa.Numeric(12, 3), server_default='0'),
        sa.Column('current_balance', sa.Numeric(12, 3), server_default='0'),
        sa.Column('quantity_per_unit', sa.Numeric(12, 3)),
        sa.Column('restock_threshold', sa.Numeric(12, 3), server_default='0'),
        sa.Column('restock_quantity', sa.Numeric(12, 3), server_default='0'),
        sa.Column('cost_per_unit', sa.Numeric(10, 4)),
        sa.Column('is_active', sa.Boolean, server_default='true'),
        sa.Column('notes', sa.Text),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'consumable_transactions',
        _uuid_pk(),
        sa.Column('consumable_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('consumables.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sequence', sa.Integer, nullable=False),
        sa.Column('type', sa.String(20), nullable=False),  # CONSUMPTION, ADDITION, ADJUSTMENT, WASTE, EXPIRATION, TRANSFER_OUT, TRANSFER_IN, INITIAL
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('balance_after', sa.Numeric(12, 3), nullable=False),
        sa.Column('reference_kind', sa.String(20)),
        sa.Column('reference_id', postgresql.UUID(as_uuid=True)),
        sa.Column('user_id', sa.String(100)),
        sa.Column('notes', sa.Text),
        sa.Column('metadata', postgresql.JSONB),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()'), index=True),
    )
    op.create_index('ix_consumable_transactions_reference', 'consumable_transactions', ['reference_kind', 'reference_id'])
    op.create_index('ix_consumable_transactions_sequence', 'consumable_transactions', ['consumable_id', 'sequence'], unique=True)

    # ============================================================
    # ANBAU-REZEPTE UND PRODUKTE
    # ============================================================

    op.create_table(
        'recipes',
        _uuid_pk(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('seed_consumable_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('consumables.id', ondelete='SET NULL')),
        sa.Column('seed_density_grams_per_tray', sa.Numeric(8, 2)),
        sa.Column('seed_soak_hours', sa.Integer, server_default='0'),
        sa.Column('germination_days', sa.Numeric(5, 2), server_default='0'),
        sa.Column('blackout_days', sa.Numeric(5, 2), server_default='0'),
        sa.Column('light_days', sa.Numeric(5, 2), server_default='0'),
        sa.Column('days_to_maturity', sa.Numeric(5, 2)),
        sa.Column('expected_yield_grams', sa.Numeric(8, 2)),
        sa.Column('suspend_watering_hours', sa.Integer),
        sa.Column('is_active', sa.Boolean, server_default='true'),
        sa.Column('notes', sa.Text),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'products',
        _uuid_pk(),
        sa.Column('sku', sa.String(50), nullable=False, unique=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('recipe_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('recipes.id', ondelete='SET NULL')),
        sa.Column('net_weight_grams', sa.Numeric(10, 2)),
        sa.Column('base_price', sa.Numeric(10, 2)),
        sa.Column('wholesale_price', sa.Numeric(10, 2)),
        sa.Column('wholesale_discount_percentage', sa.Numeric(5, 2)),
        sa.Column('total_stock', sa.Numeric(12, 2), server_default='0'),
        sa.Column('reserved_stock', sa.Numeric(12, 2), server_default='0'),
        sa.Column('reorder_threshold', sa.Numeric(12, 2), server_default='0'),
        sa.Column('stock_status', sa.String(30), server_default="'out_of_stock'"),
        sa.Column('is_active', sa.Boolean, server_default='true'),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, server_default=sa.text('NOW()')),
    )

    # ============================================================
    # AUFTRÄGE
    # ============================================================

    op.create_table(
        'customers',
        _uuid_pk(),
        sa.Column('name', sa.String(200), nullable=False, index=True),
        sa.Column('business_name', sa.String(200)),
        sa.Column('contact_name', sa.String(200)),
        sa.Column('email', sa.String(200)),
        sa.Column('phone', sa.String(50)),
        sa.Column('customer_type_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customer_types.id', ondelete='SET NULL')),
        sa.Column('wholesale_discount_percentage', sa.Numeric(5, 2)),
        sa.Column('notes', sa.Text),
        sa.Column('is_active', sa.Boolean, server_default='true'),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'orders',
        _uuid_pk(),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='SET NULL'), index=True),
        sa.Column('status', sa.String(30), server_default="'draft'", index=True),
        sa.Column('delivery_date', sa.Date, index=True),
        sa.Column('notes', sa.Text),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'order_items',
        _uuid_pk(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), server_default='0'),
    )

    # ============================================================
    # FERTIGWARE
    # ============================================================

    op.create_table(
        'product_inventories',
        _uuid_pk(),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False, index=True),
        sa.Column('batch_number', sa.String(50), index=True),
        sa.Column('lot_number', sa.String(50)),
        sa.Column('quantity', sa.Numeric(12, 2), server_default='0'),
        sa.Column('reserved_quantity', sa.Numeric(12, 2), server_default='0'),
        sa.Column('cost_per_unit', sa.Numeric(10, 2)),
        sa.Column('production_date', sa.Date),
        sa.Column('expiration_date', sa.Date, index=True),
        sa.Column('location', sa.String(100)),
        sa.Column('status', sa.String(20), server_default="'ACTIVE'"),  # ACTIVE, DEPLETED, EXPIRED, DAMAGED
        sa.Column('notes', sa.Text),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'inventory_transactions',
        _uuid_pk(),
        sa.Column('product_inventory_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('product_inventories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False),
        sa.Column('balance_after', sa.Numeric(12, 2), nullable=False),
        sa.Column('unit_cost', sa.Numeric(10, 2)),
        sa.Column('total_cost', sa.Numeric(12, 2)),
        sa.Column('reference_kind', sa.String(20)),
        sa.Column('reference_id', postgresql.UUID(as_uuid=True)),
        sa.Column('user_id', sa.String(100)),
        sa.Column('notes', sa.Text),
        sa.Column('metadata', postgresql.JSONB),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()'), index=True),
    )
    op.create_index('ix_inventory_transactions_product_type', 'inventory_transactions', ['product_id', 'type'])
    op.create_index('ix_inventory_transactions_reference', 'inventory_transactions', ['reference_kind', 'reference_id'])

    op.create_table(
        'inventory_reservations',
        _uuid_pk(),
        sa.Column('product_inventory_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('product_inventories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), index=True),
        sa.Column('order_item_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('order_items.id', ondelete='CASCADE')),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(30), server_default="'pending'", index=True),
        sa.Column('expires_at', sa.DateTime, index=True),
        sa.Column('fulfilled_at', sa.DateTime),
        sa.Column('cancelled_at', sa.DateTime),
        sa.Column('notes', sa.Text),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, server_default=sa.text('NOW()')),
    )

    # ============================================================
    # ANBAUPLANUNG UND CROPS
    # ============================================================

    op.create_table(
        'crop_plans',
        _uuid_pk(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), index=True),
        sa.Column('recipe_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('recipes.id'), nullable=False),
        sa.Column('status', sa.String(20), server_default="'DRAFT'", index=True),  # DRAFT, APPROVED, GENERATING, COMPLETED, CANCELLED
        sa.Column('trays_needed', sa.Integer, server_default='0'),
        sa.Column('grams_needed', sa.Numeric(10, 2), server_default='0'),
        sa.Column('grams_per_tray', sa.Numeric(8, 2)),
        sa.Column('plant_by_date', sa.Date, index=True),
        sa.Column('seed_soak_date', sa.Date),
        sa.Column('expected_harvest_date', sa.Date),
        sa.Column('delivery_date', sa.Date),
        sa.Column('approved_by', sa.String(100)),
        sa.Column('approved_at', sa.DateTime),
        sa.Column('calculation_details', postgresql.JSONB),
        sa.Column('notes', sa.Text),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'crops',
        _uuid_pk(),
        sa.Column('recipe_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('recipes.id'), nullable=False, index=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='SET NULL'), index=True),
        sa.Column('crop_plan_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('crop_plans.id', ondelete='SET NULL'), index=True),
        sa.Column('tray_number', sa.String(50)),
        sa.Column('tray_count', sa.Integer, server_default='1'),
        sa.Column('current_stage', sa.String(30), server_default="'germination'", index=True),
        sa.Column('requires_soaking', sa.Boolean, server_default='false'),
        sa.Column('planting_at', sa.DateTime, nullable=False, index=True),
        sa.Column('soaking_at', sa.DateTime),
        sa.Column('germination_at', sa.DateTime),
        sa.Column('blackout_at', sa.DateTime),
        sa.Column('light_at', sa.DateTime),
        sa.Column('harvested_at', sa.DateTime),
        sa.Column('watering_suspended_at', sa.DateTime),
        sa.Column('harvest_weight_grams', sa.Numeric(10, 2)),
        sa.Column('notes', sa.Text),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'crop_stage_transitions',
        _uuid_pk(),
        sa.Column('type', sa.String(20), nullable=False),  # ADVANCE, REVERT, BULK_ADVANCE, BULK_REVERT
        sa.Column('from_stage', sa.String(30)),
        sa.Column('to_stage', sa.String(30)),
        sa.Column('transition_at', sa.DateTime, nullable=False),
        sa.Column('recorded_at', sa.DateTime, server_default=sa.text('NOW()')),
        sa.Column('crop_count', sa.Integer, server_default='0'),
        sa.Column('succeeded_count', sa.Integer, server_default='0'),
        sa.Column('failed_count', sa.Integer, server_default='0'),
        sa.Column('failed_crops', postgresql.JSONB),
        sa.Column('validation_warnings', postgresql.JSONB),
        sa.Column('reason', sa.Text),
        sa.Column('user_id', sa.String(100)),
        sa.Column('metadata', postgresql.JSONB),
    )

    op.create_table(
        'crop_stage_history',
        _uuid_pk(),
        sa.Column('crop_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('crops.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('transition_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('crop_stage_transitions.id', ondelete='SET NULL')),
        sa.Column('from_stage', sa.String(30)),
        sa.Column('to_stage', sa.String(30), nullable=False),
        sa.Column('changed_at', sa.DateTime, nullable=False),
        sa.Column('reason', sa.Text),
        sa.Column('user_id', sa.String(100)),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'crop_tasks',
        _uuid_pk(),
        sa.Column('crop_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('crops.id', ondelete='CASCADE'), nullable=False),
        sa.Column('task_type', sa.String(20), nullable=False),  # ADVANCE_STAGE, SUSPEND_WATERING
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('target_stage', sa.String(30)),
        sa.Column('batch_key', sa.String(120), index=True),
        sa.Column('scheduled_for', sa.DateTime, nullable=False),
        sa.Column('status', sa.String(20), server_default="'PENDING'"),  # PENDING, COMPLETED, SKIPPED
        sa.Column('completed_at', sa.DateTime),
        sa.Column('metadata', postgresql.JSONB),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()')),
    )
    op.create_index('ix_crop_tasks_due', 'crop_tasks', ['scheduled_for', 'status'])

    # ============================================================
    # AKTIVITÄTSPROTOKOLL
    # ============================================================

    op.create_table(
        'activity_logs',
        _uuid_pk(),
        sa.Column('log_name', sa.String(50), nullable=False, index=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('subject_type', sa.String(50), nullable=False),
        sa.Column('subject_id', sa.String(36)),
        sa.Column('causer_id', sa.String(100)),
        sa.Column('description', sa.Text),
        sa.Column('changes', postgresql.JSONB),
        sa.Column('created_at', sa.DateTime, server_default=sa.text('NOW()'), index=True),
    )
    op.create_index('ix_activity_logs_subject', 'activity_logs', ['subject_type', 'subject_id'])


def downgrade() -> None:
    op.drop_index('ix_activity_logs_subject')
    op.drop_table('activity_logs')

    # Anbau
    op.drop_index('ix_crop_tasks_due')
    op.drop_table('crop_tasks')
    op.drop_table('crop_stage_history')
    op.drop_table('crop_stage_transitions')
    op.drop_table('crops')
    op.drop_table('crop_plans')

    # Fertigware
    op.drop_table('inventory_reservations')
    op.drop_index('ix_inventory_transactions_reference')
    op.drop_index('ix_inventory_transactions_product_type')
    op.drop_table('inventory_transactions')
    op.drop_table('product_inventories')

    # Aufträge, Produkte, Rezepte
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('customers')
    op.drop_table('products')
    op.drop_table('recipes')

    # Verbrauchsmaterial
    op.drop_index('ix_consumable_transactions_sequence')
    op.drop_index('ix_consumable_transactions_reference')
    op.drop_table('consumable_transactions')
    op.drop_table('consumables')

    # Stammdaten
    op.drop_table('customer_types')
    op.drop_table('unified_order_statuses')
    op.drop_table('payment_statuses')
    op.drop_table('inventory_reservation_statuses')
    op.drop_table('product_stock_statuses')
    op.drop_table('consumable_units')
    op.drop_table('consumable_types')
    op.drop_table('crop_stages')
