"""NiceGUI interface - thin visualization layer for chat interactions.

Responsibilities:
    - Chat message display with streaming support
    - Model picker grouped by provider
    - Document upload and pasted-image attachments
    - Image/video generation dialog with status polling

Conversation state lives in an explicit ChatSession per page. All vendor
work is delegated to the API.
"""
