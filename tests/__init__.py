"""Test package for Ruby Chat.

Structure:
    - unit/: Individual function and class tests
    - integration/: API workflows through the real FastAPI app

Vendors are never called; providers and routers are scripted.
Leverages pytest with pytest-check for soft assertions.
"""
