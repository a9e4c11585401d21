"""create analysis tables

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-18 10:12:41.118204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # per_word：一個字一列
    op.create_table(
        'analyzed_words',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('word', sa.String(length=255), nullable=False),
        sa.Column('definition', sa.Text(), nullable=False),
        sa.Column('sample_sentence', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index(op.f('ix_analyzed_words_id'), 'analyzed_words', ['id'])

    # per_image：一張圖一列，結果整包存 JSON
    op.create_table(
        'image_analyses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('image_path', sa.String(length=1024), nullable=False),
        sa.Column('analysis_data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index(op.f('ix_image_analyses_id'), 'image_analyses', ['id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_image_analyses_id'), table_name='image_analyses')
    op.drop_table('image_analyses')
    op.drop_index(op.f('ix_analyzed_words_id'), table_name='analyzed_words')
    op.drop_table('analyzed_words')
