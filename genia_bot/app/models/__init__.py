from .user import User, PlanTier
from .message import WhatsAppMessage, MessageDirection
from .user_action import UserAction, ACTION_WHATSAPP_MESSAGE, ACTION_MESSAGE_SENT
from .auth_token import AuthToken, hash_token
from .subscription import Subscription

__all__ = [
    "User", "PlanTier",
    "WhatsAppMessage", "MessageDirection",
    "UserAction", "ACTION_WHATSAPP_MESSAGE", "ACTION_MESSAGE_SENT",
    "AuthToken", "hash_token",
    "Subscription",
]
