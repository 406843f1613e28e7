"""
Pinpoint Backend — Middleware Package
======================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

The request id is set first so the access-log line of the same request
carries it. WebSocket connections bypass both (BaseHTTPMiddleware only
handles HTTP).
"""
