from dwiju.models.account import Account
from dwiju.models.conversation import ChatMessage, Conversation
from dwiju.models.feature import Feature

__all__ = ["Account", "ChatMessage", "Conversation", "Feature"]
