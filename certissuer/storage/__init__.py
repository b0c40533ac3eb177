"""Artifact storage for uploaded files."""
