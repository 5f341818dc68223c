"""create zaps, triggers, actions, zap_runs and user_connections tables

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-03-01 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '1a2b3c4d5e6f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'zaps',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('max_runs', sa.Integer(), nullable=False, server_default='-1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_zaps_id', 'zaps', ['id'])
    op.create_index('ix_zaps_user_id', 'zaps', ['user_id'])

    op.create_table(
        'triggers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('zap_id', sa.String(length=36), nullable=False),
        sa.Column('trigger_type', sa.String(length=50), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['zap_id'], ['zaps.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_triggers_id', 'triggers', ['id'])
    op.create_index('ix_triggers_zap_id', 'triggers', ['zap_id'], unique=True)

    op.create_table(
        'actions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('zap_id', sa.String(length=36), nullable=False),
        sa.Column('action_type', sa.String(length=50), nullable=False),
        sa.Column('sorting_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['zap_id'], ['zaps.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_actions_zap_id', 'actions', ['zap_id'])

    op.create_table(
        'zap_runs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('zap_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('outcomes', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['zap_id'], ['zaps.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_zap_runs_id', 'zap_runs', ['id'])
    op.create_index('ix_zap_runs_zap_id', 'zap_runs', ['zap_id'])
    op.create_index('ix_zap_runs_status', 'zap_runs', ['status'])

    op.create_table(
        'user_connections',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('scope', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'provider', name='uq_user_connections_user_provider')
    )
    op.create_index('ix_user_connections_id', 'user_connections', ['id'])
    op.create_index('ix_user_connections_user_id', 'user_connections', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_user_connections_user_id', table_name='user_connections')
    op.drop_index('ix_user_connections_id', table_name='user_connections')
    op.drop_table('user_connections')

    op.drop_index('ix_zap_runs_status', table_name='zap_runs')
    op.drop_index('ix_zap_runs_zap_id', table_name='zap_runs')
    op.drop_index('ix_zap_runs_id', table_name='zap_runs')
    op.drop_table('zap_runs')

    op.drop_index('ix_actions_zap_id', table_name='actions')
    op.drop_table('actions')

    op.drop_index('ix_triggers_zap_id', table_name='triggers')
    op.drop_index('ix_triggers_id', table_name='triggers')
    op.drop_table('triggers')

    op.drop_index('ix_zaps_user_id', table_name='zaps')
    op.drop_index('ix_zaps_id', table_name='zaps')
    op.drop_table('zaps')
