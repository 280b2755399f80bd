"""Chat engine: conversation state, search detection, and orchestration."""

from islandchat.chat.detector import SearchDetector, detect_search
from islandchat.chat.models import ChatPreferences, ChatState, Turn
from islandchat.chat.orchestrator import ChatOrchestrator
from islandchat.chat.session import ConversationSession
from islandchat.chat.state import StateStore

__all__ = [
    "ChatOrchestrator",
    "ChatPreferences",
    "ChatState",
    "ConversationSession",
    "SearchDetector",
    "StateStore",
    "Turn",
    "detect_search",
]
