"""API Layer — FastAPI routers, dependency factories and error handlers.

Invariants:
    - Every user-scoped route resolves CurrentUser before touching a service
    - Routes translate HTTP shapes to service calls and back; money rules,
      OAuth steps and provider calls live in services/
"""
