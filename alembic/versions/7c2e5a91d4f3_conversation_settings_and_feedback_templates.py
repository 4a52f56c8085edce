"""conversation settings and feedback form templates

Revision ID: 7c2e5a91d4f3
Revises: 3f1c9a7d2b10
Create Date: 2026-10-18 10:41:07.552190

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '7c2e5a91d4f3'
down_revision: Union[str, Sequence[str], None] = '3f1c9a7d2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # The baseline builds from current models, so both steps tolerate existing objects
    op.execute("ALTER TABLE conversation_participants ADD COLUMN IF NOT EXISTS mute_until TIMESTAMPTZ")
    op.execute("ALTER TABLE conversation_participants ADD COLUMN IF NOT EXISTS custom_title VARCHAR")

    if not sa.inspect(op.get_bind()).has_table('feedback_form_templates'):
        op.create_table(
            'feedback_form_templates',
            sa.Column('id', sa.UUID(), nullable=False),
            sa.Column('community_id', sa.UUID(), nullable=False),
            sa.Column('title', sa.String(), nullable=False),
            sa.Column('subtitle', sa.String(), nullable=True),
            sa.Column('fields', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
            sa.ForeignKeyConstraint(['community_id'], ['communities.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(
            op.f('ix_feedback_form_templates_community_id'), 'feedback_form_templates', ['community_id']
        )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_feedback_form_templates_community_id'), table_name='feedback_form_templates')
    op.drop_table('feedback_form_templates')
    op.drop_column('conversation_participants', 'custom_title')
    op.drop_column('conversation_participants', 'mute_until')
