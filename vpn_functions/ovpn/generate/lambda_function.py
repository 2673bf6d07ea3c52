"""
Generate the OpenVPN client profile for a Client VPN endpoint - custom resource handler
"""
import json
import logging
from typing import Any, Dict, Optional

from ...common.aws_clients import AwsClients, create_aws_clients
from ...common.errors import ConfigError
from ...common.lifecycle import LifecycleEvent, LifecycleOrchestrator
from ...common.retry_utils import RetryPolicy
from ...common.secret_store import (
    CA_CERTIFICATE,
    CLIENT_CERTIFICATE,
    CLIENT_PRIVATE_KEY,
    ParameterStore,
    SecretBundleStore,
)
from ...common.settings import load_settings
from ..ovpn_utils import OvpnConfig, generate_ovpn_config, resolve_vpn_endpoint_dns

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

RESOURCE_PREFIX = 'ovpn-generator'


def _required_property(event: LifecycleEvent, name: str) -> str:
    value = event.resource_properties.get(name)
    if not value:
        raise ConfigError(f"Missing required property: {name}")
    return str(value)


def assemble_profile(event: LifecycleEvent, resource_id: str, ec2_client: Any,
                     parameter_store: ParameterStore,
                     bundle_store: SecretBundleStore) -> Dict[str, Any]:
    """
    Build the .ovpn profile from the endpoint DNS name and stored certificates

    Args:
        event: Parsed Create or Update event
        resource_id: Physical id of this profile, keeps the secret name unique
        ec2_client: EC2 client used to describe the Client VPN endpoint
        parameter_store: SSM gateway holding the certificate material
        bundle_store: Secrets Manager gateway receiving the rendered profile

    Returns:
        Custom resource Data with the profile text and its secret ARN
    """
    endpoint_id = _required_property(event, 'ClientVpnEndpointId')
    certificate_resource_id = _required_property(event, 'CertificateResourceId')
    config = OvpnConfig.from_dict(event.resource_properties.get('Config'))

    vpn_endpoint_dns = resolve_vpn_endpoint_dns(ec2_client, endpoint_id)

    material = parameter_store.get_batch(
        certificate_resource_id,
        (CA_CERTIFICATE, CLIENT_CERTIFICATE, CLIENT_PRIVATE_KEY),
    )
    logger.info(f"Retrieved certificate material for {certificate_resource_id}")

    ovpn_content = generate_ovpn_config(
        vpn_endpoint_dns,
        config,
        ca_cert=material[CA_CERTIFICATE],
        client_cert=material[CLIENT_CERTIFICATE],
        client_key=material[CLIENT_PRIVATE_KEY],
    )

    secret_name = f"vpn-config-{endpoint_id}-{resource_id}"
    secret_arn = bundle_store.create_secret(
        secret_name,
        ovpn_content,
        description=f"OpenVPN configuration for Client VPN endpoint {endpoint_id}",
    )

    return {
        'profileText': ovpn_content,
        'profileSecretRef': secret_arn,
    }


def lambda_handler(event: Dict[str, Any], context: Any,
                   clients: Optional[AwsClients] = None) -> Dict[str, Any]:
    """
    Lambda handler for the OpenVPN profile custom resource

    Args:
        event: CloudFormation custom resource event
        context: Lambda context object
        clients: AWS clients, created from the runtime environment when omitted

    Returns:
        Custom resource result with Status, PhysicalResourceId and Data or Reason
    """
    logger.info('OVPN Generator Lambda invoked')
    logger.info(f"Event: {json.dumps(event, default=str)}")

    def operation(lifecycle_event: LifecycleEvent, resource_id: str) -> Dict[str, Any]:
        settings = load_settings()
        aws = clients or create_aws_clients(settings.region)
        retry_policy = RetryPolicy(max_attempts=settings.max_attempts, base_delay=settings.base_delay)

        return assemble_profile(
            lifecycle_event,
            resource_id,
            aws.ec2,
            ParameterStore(aws.ssm, settings.parameter_namespace, retry_policy),
            SecretBundleStore(aws.secretsmanager, retry_policy),
        )

    return LifecycleOrchestrator(RESOURCE_PREFIX, operation).handle(event).to_dict()
