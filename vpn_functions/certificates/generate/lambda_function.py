"""
Generate the Client VPN certificate authority and leaf certificates - custom resource handler
"""
import json
import logging
from typing import Any, Dict, Optional

from ...common.aws_clients import AwsClients, create_aws_clients
from ...common.certificate_store import CertificateStore
from ...common.lifecycle import LifecycleEvent, LifecycleOrchestrator
from ...common.retry_utils import RetryPolicy
from ...common.secret_store import (
    CA_CERTIFICATE,
    CA_PRIVATE_KEY,
    CLIENT_CERTIFICATE,
    CLIENT_PRIVATE_KEY,
    ParameterStore,
)
from ...common.settings import load_settings
from ..certificate_utils import CertificateConfig, generate_certificate_batch

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

RESOURCE_PREFIX = 'certificate-generator'


def issue_certificates(event: LifecycleEvent, resource_id: str,
                       certificate_store: CertificateStore,
                       parameter_store: ParameterStore) -> Dict[str, Any]:
    """
    Generate a certificate batch, import it into ACM and persist it in SSM

    Args:
        event: Parsed Create or Update event
        resource_id: Physical id the SSM parameters are stored under
        certificate_store: ACM gateway
        parameter_store: SSM gateway

    Returns:
        Custom resource Data with PEM material and ACM ARNs
    """
    config = CertificateConfig.from_dict(event.resource_properties.get('Config'))
    logger.info(
        f"Certificate configuration: organization={config.organization_name}, "
        f"keySize={config.key_size}, validityPeriodDays={config.validity_period_days}"
    )

    batch = generate_certificate_batch(config)

    arns = certificate_store.import_batch(batch)

    parameter_names = parameter_store.put_batch(resource_id, {
        CA_CERTIFICATE: batch.authority.certificate_pem,
        CA_PRIVATE_KEY: batch.authority.private_key_pem,
        CLIENT_CERTIFICATE: batch.client.certificate_pem,
        CLIENT_PRIVATE_KEY: batch.client.private_key_pem,
    })
    logger.info(f"Stored certificate parameters: {sorted(parameter_names.values())}")

    return {
        'caCertPem': batch.authority.certificate_pem,
        'caKeyPem': batch.authority.private_key_pem,
        'caRef': arns['ca'],
        'serverCertPem': batch.server.certificate_pem,
        'serverKeyPem': batch.server.private_key_pem,
        'serverRef': arns['server'],
        'clientCertPem': batch.client.certificate_pem,
        'clientKeyPem': batch.client.private_key_pem,
        'clientRef': arns['client'],
    }


def lambda_handler(event: Dict[str, Any], context: Any,
                   clients: Optional[AwsClients] = None) -> Dict[str, Any]:
    """
    Lambda handler for the certificate generator custom resource

    Args:
        event: CloudFormation custom resource event
        context: Lambda context object
        clients: AWS clients, created from the runtime environment when omitted

    Returns:
        Custom resource result with Status, PhysicalResourceId and Data or Reason
    """
    logger.info('Certificate Generator Lambda invoked')
    logger.info(f"Event: {json.dumps(event, default=str)}")

    def operation(lifecycle_event: LifecycleEvent, resource_id: str) -> Dict[str, Any]:
        # Clients are only built for Create and Update
        settings = load_settings()
        aws = clients or create_aws_clients(settings.region)
        retry_policy = RetryPolicy(max_attempts=settings.max_attempts, base_delay=settings.base_delay)

        return issue_certificates(
            lifecycle_event,
            resource_id,
            CertificateStore(aws.acm, retry_policy),
            ParameterStore(aws.ssm, settings.parameter_namespace, retry_policy),
        )

    return LifecycleOrchestrator(RESOURCE_PREFIX, operation).handle(event).to_dict()
