"""
SSM Parameter Store and Secrets Manager gateways for certificate material
"""
import logging
from functools import partial
from typing import Any, Dict, Iterable, Mapping, Optional

from .errors import SecretReadError, SecretWriteError
from .retry_utils import RetryPolicy, get_error_message, run_batch

logger = logging.getLogger(__name__)

CA_CERTIFICATE = 'ca-certificate'
CA_PRIVATE_KEY = 'ca-private-key'
CLIENT_CERTIFICATE = 'client-certificate'
CLIENT_PRIVATE_KEY = 'client-private-key'

ARTIFACTS = (CA_CERTIFICATE, CA_PRIVATE_KEY, CLIENT_CERTIFICATE, CLIENT_PRIVATE_KEY)
SENSITIVE_ARTIFACTS = {CA_PRIVATE_KEY, CLIENT_PRIVATE_KEY}


class ParameterStore:
    """
    Hierarchical secret store backed by SSM Parameter Store

    Names follow <namespace>/<resource id>/<artifact>.
    """

    def __init__(self, ssm_client: Any, namespace: str = '/vpn',
                 retry_policy: Optional[RetryPolicy] = None):
        self.ssm = ssm_client
        self.namespace = namespace.rstrip('/')
        self.retry_policy = retry_policy or RetryPolicy()

    def parameter_name(self, resource_id: str, artifact: str) -> str:
        if artifact not in ARTIFACTS:
            raise ValueError(f"Unknown artifact: {artifact}")
        return f"{self.namespace}/{resource_id}/{artifact}"

    def put_secret(self, name: str, value: str, sensitive: bool) -> None:
        """
        Write a parameter once; sensitive values are stored as SecureString

        Raises:
            SecretWriteError: if the write fails after retries
        """
        try:
            self.retry_policy.call(
                self.ssm.put_parameter,
                Name=name,
                Value=value,
                Type='SecureString' if sensitive else 'String',
                Overwrite=False,
            )
        except Exception as error:
            logger.error(f"Failed to write parameter {name}: {type(error).__name__} - {error}")
            raise SecretWriteError(
                f"Failed to write parameter {name}: {get_error_message(error)}"
            ) from error

        logger.info(f"Stored parameter {name}")

    def get_secret(self, name: str, decrypt: bool = False) -> str:
        """
        Read a parameter value; SecureString values need decrypt=True to come back in clear

        Raises:
            SecretReadError: if the read fails after retries
        """
        try:
            response = self.retry_policy.call(
                self.ssm.get_parameter, Name=name, WithDecryption=decrypt
            )
        except Exception as error:
            logger.error(f"Failed to read parameter {name}: {type(error).__name__} - {error}")
            raise SecretReadError(
                f"Failed to read parameter {name}: {get_error_message(error)}"
            ) from error

        value = response.get('Parameter', {}).get('Value')
        if value is None:
            raise SecretReadError(f"Parameter {name} has no value")
        return value

    def put_batch(self, resource_id: str, values: Mapping[str, str]) -> Dict[str, str]:
        """
        Write several artifacts for one resource id concurrently

        Args:
            resource_id: Physical id of the certificate resource
            values: Mapping of artifact to value

        Returns:
            Mapping of artifact to parameter name
        """
        names = {artifact: self.parameter_name(resource_id, artifact) for artifact in values}
        tasks = {
            artifact: partial(self.put_secret, names[artifact], value, artifact in SENSITIVE_ARTIFACTS)
            for artifact, value in values.items()
        }
        run_batch(tasks)
        return names

    def get_batch(self, resource_id: str, artifacts: Iterable[str]) -> Dict[str, str]:
        """Read several artifacts for one resource id concurrently, decrypting private keys"""
        tasks = {
            artifact: partial(
                self.get_secret,
                self.parameter_name(resource_id, artifact),
                artifact in SENSITIVE_ARTIFACTS,
            )
            for artifact in artifacts
        }
        return run_batch(tasks)


class SecretBundleStore:
    """
    Secrets Manager gateway for rendered text bundles
    """

    def __init__(self, secretsmanager_client: Any, retry_policy: Optional[RetryPolicy] = None):
        self.secretsmanager = secretsmanager_client
        self.retry_policy = retry_policy or RetryPolicy()

    def create_secret(self, name: str, secret_string: str, description: str = '') -> str:
        """
        Create a named secret holding a text blob

        Returns:
            ARN of the new secret

        Raises:
            SecretWriteError: if the secret cannot be created after retries
        """
        params = {'Name': name, 'SecretString': secret_string}
        if description:
            params['Description'] = description

        try:
            response = self.retry_policy.call(self.secretsmanager.create_secret, **params)
        except Exception as error:
            logger.error(f"Failed to create secret {name}: {type(error).__name__} - {error}")
            raise SecretWriteError(
                f"Failed to create secret {name}: {get_error_message(error)}"
            ) from error

        logger.info(f"Created secret {name}")
        return response['ARN']
