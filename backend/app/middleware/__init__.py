# Middleware package init
"""
ClubShelf Voting Backend — Middleware Package
===============================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    Request ID runs first so the access log line and every service log
    line of the same request share one correlation ID. Responses pass
    back through the chain in reverse, which is where Logging measures
    status and duration and Request ID adds the X-Request-ID header.
"""
