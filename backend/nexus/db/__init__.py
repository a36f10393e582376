"""Persistence Schema — declarative base and naming convention.

Engine and session lifecycle live in infrastructure/database.py; this package
only defines what the tables look like.
"""
