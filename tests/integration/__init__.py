"""Integration tests for components working together as a system.

Vendors are scripted - everything else runs for real.

Coverage:
    - API endpoints with real HTTP requests through ASGITransport
    - SSE framing, sentinel and error events from the chat relay
    - Document extraction from in-memory TXT, DOCX and PDF files
    - Generation task submission and polling against a mock router
"""
