"""SaveSmith Suite - save-data codec, editable document model and search."""

__version__ = "1.0.0"
