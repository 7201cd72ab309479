"""Pydantic schemas for raw device events and the upstream data API."""
