"""Persistence layer for Task API."""
