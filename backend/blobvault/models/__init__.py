"""Import all models so SQLAlchemy metadata knows about them."""
from blobvault.models.base import Base
from blobvault.models.stored_file import StoredFile
from blobvault.models.file_version import FileVersion

__all__ = ["Base", "StoredFile", "FileVersion"]
