"""create_partitions

Revision ID: k1r0p4rt0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'k1r0p4rt0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # partitions テーブルを作成（ストアごとの名前付きパーティション）
    op.create_table('partitions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('store_id', sa.String(length=255), nullable=False, comment='ストアID（事業所マッピングで参照されるファイルID）'),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'name', name='uq_partitions_store_id_name')
    )

    # partition_rows テーブルを作成
    op.create_table('partition_rows',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('partition_id', sa.BigInteger(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('cells', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['partition_id'], ['partitions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_partition_rows_partition_id_position',
        'partition_rows',
        ['partition_id', 'position'],
        unique=False
    )


def downgrade() -> None:
    op.drop_index('ix_partition_rows_partition_id_position', table_name='partition_rows')
    op.drop_table('partition_rows')
    op.drop_table('partitions')
