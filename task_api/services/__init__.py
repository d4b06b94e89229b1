"""Service helpers for Task API."""
