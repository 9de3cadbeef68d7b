"""Persistence models and request schemas."""
