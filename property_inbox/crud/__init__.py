from property_inbox.crud.profile_crud import profile_crud
from property_inbox.crud.conversation_crud import conversation_crud
from property_inbox.crud.participant_crud import participant_crud
from property_inbox.crud.message_crud import message_crud
from property_inbox.crud.delivery_crud import delivery_crud
from property_inbox.crud.label_crud import label_crud
from property_inbox.crud.notification_preference_crud import notification_preference_crud
from property_inbox.crud.reaction_crud import reaction_crud
from property_inbox.crud.mention_crud import mention_crud
from property_inbox.crud.template_crud import template_crud

__all__ = [
    "profile_crud",
    "conversation_crud",
    "participant_crud",
    "message_crud",
    "delivery_crud",
    "label_crud",
    "notification_preference_crud",
    "reaction_crud",
    "mention_crud",
    "template_crud",
]
