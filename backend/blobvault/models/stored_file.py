"""StoredFile model - one row per logical path, owning its versions."""
from sqlalchemy import Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from blobvault.models.base import Base, BigIntId, CreatedAtMixin


class StoredFile(Base, CreatedAtMixin):
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    # Equals the number of committed versions; only ever incremented under a row lock
    latest_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    versions = relationship(
        "FileVersion",
        back_populates="file",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    __table_args__ = (
        Index("idx_files_path", "path"),
    )
