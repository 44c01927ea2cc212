"""Unit tests for individual components in isolation.

Coverage:
    - relay/: Provider adapters, message shaping and SSE event stream
    - parsing/: Text extraction, normalization and truncation
    - generation/: Task submission and status normalization
    - ui/: Conversation state and the browser-side API client

Uses httpx.MockTransport and unittest.mock for vendor calls.
"""
