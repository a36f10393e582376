"""Pydantic Schemas — request/response validation for API endpoints and third parties.

Invariants:
    - Schemas validate at system boundaries (user input, provider responses)
    - Monetary request fields are Decimal; responses render them as numbers

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
    - provider_responses.py holds every third-party shape we read (fail closed)
"""
