# Middleware package init
"""
LocalSpots Backend - Middleware Package
=========================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    Request ID runs first so the access log line and the error responses
    carry the correlation ID.
"""
