"""
AWS Secrets Manager access for database credentials.
"""
import json
import logging
from typing import Any, Dict

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class SecretNotFound(Exception):
    pass


def get_secret(secret_name: str, region_name: str = "us-east-1") -> Dict[str, Any]:
    """
    Fetch a JSON secret and return it as a dict.

    Raises:
        SecretNotFound: the secret does not exist
        ClientError: any other Secrets Manager failure
    """
    client = boto3.session.Session().client(service_name="secretsmanager", region_name=region_name)
    try:
        response = client.get_secret_value(SecretId=secret_name)
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code")
        if code == "ResourceNotFoundException":
            logger.error("Secret %s was not found in %s.", secret_name, region_name)
            raise SecretNotFound(secret_name) from e
        logger.error("Reading secret %s failed: %s", secret_name, code)
        raise
    logger.info("Secret %s retrieved.", secret_name)
    return json.loads(response["SecretString"])
