"""Chat relay between the browser and hosted LLM vendors.

Responsibilities:
    - Provider selection over a closed set of vendors (Groq, Qwen)
    - Server-side system instruction and multimodal message shaping
    - Normalized SSE streaming of vendor token fragments

Maintains clean separation from the HTTP layer.
"""

from ruby_chat.relay.chat_relay import SYSTEM_PROMPT, ChatRelay, close_chat_relay, get_chat_relay
from ruby_chat.relay.config import RelayConfig, get_relay_config
from ruby_chat.relay.providers import ChatProvider, FragmentStream, GroqProvider, QwenProvider

__all__ = [
    "SYSTEM_PROMPT",
    "ChatProvider",
    "ChatRelay",
    "FragmentStream",
    "GroqProvider",
    "QwenProvider",
    "RelayConfig",
    "close_chat_relay",
    "get_chat_relay",
    "get_relay_config",
]
