"""store slot table for the local record store

Revision ID: c20261019120000
Revises:
Create Date: 2026-10-19 12:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c20261019120000'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if 'store_slot' not in inspector.get_table_names():
        op.create_table(
            'store_slot',
            sa.Column('key', sa.String(length=64), primary_key=True),
            sa.Column('value', sa.Text(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
        )


def downgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if 'store_slot' in inspector.get_table_names():
        op.drop_table('store_slot')
