"""FileVersion model - one immutable stored payload of a StoredFile."""
from datetime import datetime
from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, LargeBinary, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from blobvault.models.base import Base, BigIntId


class FileVersion(Base):
    __tablename__ = "file_versions"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    file_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("files.id", ondelete="CASCADE"), nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    content_type: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)  # original length
    sha256_hex: Mapped[str] = mapped_column(Text, nullable=False)  # digest of the original bytes
    compression: Mapped[str | None] = mapped_column(Text, nullable=True)
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    inserted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    file = relationship("StoredFile", back_populates="versions", lazy="raise")

    __table_args__ = (
        UniqueConstraint("file_id", "version_number", name="uq_file_version"),
    )


Index("idx_fv_file_version", FileVersion.file_id, FileVersion.version_number.desc())
