"""Pydantic models: request/response bodies (per resource) and storage records (records.py)."""
