"""Audit logging for ingestion events."""
