"""Services Layer — one orchestrator per broker component.

Invariants:
    - Services receive Settings, repositories and provider clients in __init__
    - Services never read the environment and never build HTTP responses

Design Decisions:
    - One service file per component for locality (no god objects)
"""
