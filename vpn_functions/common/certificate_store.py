"""
Import of generated certificates into AWS Certificate Manager
"""
import logging
from typing import Any, Dict, Optional

from .errors import CertificateImportError
from .retry_utils import RetryPolicy, get_error_message, run_batch

logger = logging.getLogger(__name__)


class CertificateStore:
    """
    ACM gateway: every import goes through the retry policy
    """

    def __init__(self, acm_client: Any, retry_policy: Optional[RetryPolicy] = None):
        self.acm = acm_client
        self.retry_policy = retry_policy or RetryPolicy()

    def import_certificate(self, certificate_pem: str, private_key_pem: str,
                           chain_pem: Optional[str] = None) -> str:
        """
        Import one PEM certificate and its private key

        Args:
            certificate_pem: PEM encoded certificate
            private_key_pem: PEM encoded unencrypted private key
            chain_pem: PEM encoded issuer chain, omitted for self-signed certificates

        Returns:
            ARN of the imported certificate

        Raises:
            CertificateImportError: if the import fails after retries
        """
        params = {
            'Certificate': certificate_pem,
            'PrivateKey': private_key_pem,
        }
        if chain_pem:
            params['CertificateChain'] = chain_pem

        try:
            response = self.retry_policy.call(self.acm.import_certificate, **params)
        except Exception as error:
            logger.error(f"Certificate import failed: {type(error).__name__} - {error}")
            raise CertificateImportError(
                f"Failed to import certificate into ACM: {get_error_message(error)}"
            ) from error

        return response['CertificateArn']

    def import_batch(self, batch) -> Dict[str, str]:
        """
        Import the CA, server and client certificates of one batch concurrently

        Args:
            batch: CertificateBatch to import

        Returns:
            Mapping of 'ca', 'server' and 'client' to certificate ARNs
        """
        ca_pem = batch.authority.certificate_pem
        tasks = {
            'ca': lambda: self.import_certificate(ca_pem, batch.authority.private_key_pem),
            'server': lambda: self.import_certificate(
                batch.server.certificate_pem, batch.server.private_key_pem, ca_pem
            ),
            'client': lambda: self.import_certificate(
                batch.client.certificate_pem, batch.client.private_key_pem, ca_pem
            ),
        }
        arns = run_batch(tasks)
        logger.info(f"Imported {len(arns)} certificates into ACM")
        return arns
