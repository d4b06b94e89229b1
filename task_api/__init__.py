"""Task API - task management service with per-task images."""

__version__ = "1.0.0"
