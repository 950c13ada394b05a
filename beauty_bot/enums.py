# beauty_bot/enums.py
from enum import Enum


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class SearchStage(str, Enum):
    """Which retrieval pass produced a candidate."""
    NONE = "None"
    MULTI_TYPE = "Multi-Type Query"
    AI_KEYWORDS = "AI Keywords"
    DIRECT = "Direct Query"
    FALLBACK = "Fallback Related Products"


# Roles the chat widget sends for assistant turns
ASSISTANT_WIRE_ROLES = frozenset({"bot", "model", "assistant"})
