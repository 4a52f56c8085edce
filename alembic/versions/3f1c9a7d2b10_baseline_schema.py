"""baseline schema

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-17 09:12:44.218305

"""
from typing import Sequence, Union

from alembic import op

from app.core.database import Base
from app.database import models  # noqa: F401

# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # checkfirst keeps this safe on databases created by the startup create_all
    Base.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    """Downgrade schema."""
    Base.metadata.drop_all(bind=op.get_bind(), checkfirst=True)
