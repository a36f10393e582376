"""Infrastructure Layer — external service clients and cross-cutting concerns.

Invariants:
    - Infrastructure never imports services/ or api/
    - All external calls wrapped with timeout/error mapping to UpstreamProviderError

Design Decisions:
    - One client per third party under providers/, sharing ProviderHttpClient
"""
