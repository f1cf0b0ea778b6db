"""
パーティション（シート）保存用モデル

1つのストア（スプレッドシートファイルに相当）は名前付きのパーティションを複数持ち、
各パーティションは position 順に並んだ行（セル配列）を保持する。
"""

from datetime import datetime
from typing import Any, List

from sqlalchemy import String, DateTime, Integer, BigInteger, ForeignKey, JSON, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from kirokun.db.base import Base


class Partition(Base):
    """名前付きパーティション（記録、記録_Archive_YYYY、ゴミ箱、incidents など）"""
    __tablename__ = 'partitions'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    store_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="ストアID（事業所マッピングで参照されるファイルID）"
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    rows: Mapped[List["PartitionRow"]] = relationship(
        back_populates="partition",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint('store_id', 'name', name='uq_partitions_store_id_name'),
    )


class PartitionRow(Base):
    """パーティション内の1行

    position は 0 始まりで連続する。行削除時は後続行を詰める。
    """
    __tablename__ = 'partition_rows'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    partition_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey('partitions.id', ondelete='CASCADE'),
        nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    cells: Mapped[List[Any]] = mapped_column(JSON, nullable=False)

    partition: Mapped["Partition"] = relationship(back_populates="rows")

    __table_args__ = (
        Index('ix_partition_rows_partition_id_position', 'partition_id', 'position'),
    )
