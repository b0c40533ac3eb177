"""Issued document records."""
