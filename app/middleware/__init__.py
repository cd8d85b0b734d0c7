"""
Venue Gallery Backend — Middleware Package
===========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Rate Limit first: over-budget requests are rejected before any work
    2. Request ID: correlation id for the access log and error logs
    3. Logging: one access line with status and duration
    4. GZip / CORS: Starlette's stock middleware

    Responses travel the chain in reverse, so the access log sees the final
    status and the X-Request-ID header is set on every response.
"""
