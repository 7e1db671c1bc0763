"""Pydantic schemas for service inputs and outputs."""
