"""Test fixtures for the messaging core.

This package provides reusable test fixtures:
- records: factories for users, contacts, conversations and messages
- backend: an in-memory FastAPI backend and a client wired to it
"""
