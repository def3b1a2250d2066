from property_inbox.notify.client import communication_client, CommunicationClient, CommunicationClientError

__all__ = ["communication_client", "CommunicationClient", "CommunicationClientError"]
