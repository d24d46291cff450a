from .conversation import Conversation
from .models import ConversationMessage

__all__ = ["Conversation", "ConversationMessage"]
