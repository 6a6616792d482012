"""blobvault - versioned blob storage over HTTP."""

__version__ = "1.0.0"
