"""
Client VPN endpoint lookup and OpenVPN client profile rendering
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..common.errors import (
    ConfigError,
    EndpointUnavailableError,
    MissingDnsNameError,
    NoEndpointsError,
)

logger = logging.getLogger(__name__)

AVAILABLE_STATUS = 'available'
ALLOWED_PROTOCOLS = ('tcp', 'udp')

FULL_TUNNEL_DIRECTIVE = 'redirect-gateway def1'


def _to_bool(key: str, value: Any) -> bool:
    # CloudFormation delivers custom resource properties as strings
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ('true', 'false'):
        return value.lower() == 'true'
    raise ConfigError(f"{key} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class OvpnConfig:
    client_cidr: str
    server_port: int
    protocol: str
    split_tunnel: bool

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> 'OvpnConfig':
        """
        Build the transport settings from the Config resource property

        Raises:
            ConfigError: for a missing config or an invalid field
        """
        if config is None:
            raise ConfigError("Cannot read property 'protocol' of null config")
        if not isinstance(config, dict):
            raise ConfigError(f"VPN config must be an object, got {type(config).__name__}")

        protocol = str(config.get('protocol', '')).lower()
        if protocol not in ALLOWED_PROTOCOLS:
            raise ConfigError(f"protocol must be tcp or udp, got {config.get('protocol')!r}")

        try:
            server_port = int(config.get('serverPort'))
        except (TypeError, ValueError):
            raise ConfigError(f"serverPort must be an integer, got {config.get('serverPort')!r}")
        if not 1 <= server_port <= 65535:
            raise ConfigError(f"serverPort must be between 1 and 65535, got {server_port}")

        return cls(
            client_cidr=str(config.get('clientCidr') or ''),
            server_port=server_port,
            protocol=protocol,
            split_tunnel=_to_bool('splitTunnel', config.get('splitTunnel', False)),
        )


def extract_vpn_endpoint_dns(endpoints: Optional[List[Dict[str, Any]]]) -> str:
    """
    Pick the DNS name of the first Client VPN endpoint in a describe result

    Args:
        endpoints: ClientVpnEndpoints list from DescribeClientVpnEndpoints

    Returns:
        The endpoint DNS name

    Raises:
        NoEndpointsError: if the list is empty or missing
        EndpointUnavailableError: if the endpoint status is not 'available'
        MissingDnsNameError: if the endpoint has no DNS name
    """
    if not endpoints:
        raise NoEndpointsError()

    endpoint = endpoints[0]

    status_code = (endpoint.get('Status') or {}).get('Code')
    if status_code != AVAILABLE_STATUS:
        raise EndpointUnavailableError(status_code)

    dns_name = endpoint.get('DnsName')
    if not dns_name:
        raise MissingDnsNameError()

    return dns_name


def resolve_vpn_endpoint_dns(ec2_client: Any, endpoint_id: str) -> str:
    """
    Look up a Client VPN endpoint and return its DNS name

    Args:
        ec2_client: EC2 client
        endpoint_id: Client VPN endpoint id (cvpn-endpoint-...)

    Returns:
        The endpoint DNS name
    """
    response = ec2_client.describe_client_vpn_endpoints(ClientVpnEndpointIds=[endpoint_id])
    dns_name = extract_vpn_endpoint_dns(response.get('ClientVpnEndpoints') or [])
    logger.info(f"Resolved Client VPN endpoint {endpoint_id} to {dns_name}")
    return dns_name


def generate_ovpn_config(vpn_endpoint_dns: str, config: OvpnConfig, ca_cert: str,
                         client_cert: str, client_key: str) -> str:
    lines = [
        'client',
        'dev tun',
        f"proto {config.protocol}",
        f"remote {vpn_endpoint_dns} {config.server_port}",
        'resolv-retry infinite',
        'nobind',
        'persist-key',
        'persist-tun',
        'remote-cert-tls server',
        'cipher AES-256-GCM',
        'verb 3',
    ]

    if not config.split_tunnel:
        lines.append(FULL_TUNNEL_DIRECTIVE)

    preamble = '\n'.join(lines)

    # PEM blocks are embedded verbatim
    return (
        f"{preamble}\n"
        f"\n<ca>\n{ca_cert}\n</ca>\n"
        f"\n<cert>\n{client_cert}\n</cert>\n"
        f"\n<key>\n{client_key}\n</key>"
    )
