"""line users and form submissions

Revision ID: 3b1f0c2a9d41
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b1f0c2a9d41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'line_users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('line_user_id', sa.String(length=64), nullable=False),
        sa.Column('display_name', sa.Text(), nullable=False),
        sa.Column('picture_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_line_users_line_user_id'), 'line_users', ['line_user_id'], unique=True)

    op.create_table(
        'form_submissions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('line_user_id', sa.String(length=64), nullable=False),
        sa.Column('form_url', sa.Text(), nullable=False),
        sa.Column('additional_message', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_form_submissions_line_user_id'), 'form_submissions', ['line_user_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_form_submissions_line_user_id'), table_name='form_submissions')
    op.drop_table('form_submissions')
    op.drop_index(op.f('ix_line_users_line_user_id'), table_name='line_users')
    op.drop_table('line_users')
