from property_inbox.model.profile import Profile
from property_inbox.model.conversation import Conversation
from property_inbox.model.conversation_participant import ConversationParticipant
from property_inbox.model.message import Message
from property_inbox.model.message_delivery import MessageDelivery
from property_inbox.model.conversation_label import ConversationLabel
from property_inbox.model.notification_preference import NotificationPreference
from property_inbox.model.message_reaction import MessageReaction
from property_inbox.model.message_mention import MessageMention
from property_inbox.model.message_template import MessageTemplate

__all__ = [
    "Profile",
    "Conversation",
    "ConversationParticipant",
    "Message",
    "MessageDelivery",
    "ConversationLabel",
    "NotificationPreference",
    "MessageReaction",
    "MessageMention",
    "MessageTemplate",
]
