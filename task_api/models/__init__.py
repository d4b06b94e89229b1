"""Database models for Task API."""
