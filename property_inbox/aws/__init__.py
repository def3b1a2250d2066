"""
AWS integrations layer.
"""
from property_inbox.aws.secrets import SecretNotFound, get_secret

__all__ = [
    "SecretNotFound",
    "get_secret",
]
