"""Ruby Chat - streaming chat assistant over hosted LLM vendors.

Combines FastAPI for HTTP streaming, httpx and the Groq SDK for vendor calls,
NiceGUI for the chat interface, and Pydantic for data validation.

Components:
    - api: HTTP endpoints and streaming responses
    - relay: Provider dispatch and SSE relay of vendor token streams
    - parsing: Document text extraction for uploads
    - generation: Image/video generation task submission and polling
    - ui: Web interface for chat interactions
    - models: Request/response schemas
"""

__version__ = "0.1.0"
