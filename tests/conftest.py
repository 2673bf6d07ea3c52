import threading
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from vpn_functions.certificates.certificate_utils import (
    CertificateConfig,
    generate_certificate_batch,
)
from vpn_functions.common.aws_clients import AwsClients
from vpn_functions.common.retry_utils import RetryPolicy

CERTIFICATE_CONFIG = {
    'organizationName': 'Test Organization',
    'organizationalUnit': 'IT Department',
    'country': 'US',
    'state': 'California',
    'city': 'San Francisco',
    'keySize': 2048,
    'validityPeriodDays': 365,
}

OVPN_CONFIG = {
    'clientCidr': '10.0.0.0/16',
    'serverPort': 443,
    'protocol': 'udp',
    'splitTunnel': True,
}

ENDPOINT_ID = 'cvpn-endpoint-12345'
ENDPOINT_DNS = 'cvpn-endpoint-12345.prod.clientvpn.us-east-1.amazonaws.com'


def client_error(code, message='Simulated failure', operation='Operation'):
    return ClientError({'Error': {'Code': code, 'Message': message}}, operation)


@pytest.fixture(autouse=True)
def aws_environment(monkeypatch):
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')
    monkeypatch.setenv('RETRY_BASE_DELAY_SECONDS', '0')
    monkeypatch.delenv('VPN_PARAMETER_NAMESPACE', raising=False)
    monkeypatch.delenv('RETRY_MAX_ATTEMPTS', raising=False)


@pytest.fixture(scope='session')
def certificate_config():
    return CertificateConfig.from_dict(CERTIFICATE_CONFIG)


@pytest.fixture(scope='session')
def certificate_batch(certificate_config):
    return generate_certificate_batch(certificate_config)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def retry_policy(sleeps):
    return RetryPolicy(max_attempts=5, base_delay=1.0, sleep=sleeps.append)


class InMemorySsm:
    """Minimal stand-in for the SSM put_parameter/get_parameter calls"""

    def __init__(self):
        self.parameters = {}
        self._lock = threading.Lock()
        self.put_parameter = MagicMock(side_effect=self._put)
        self.get_parameter = MagicMock(side_effect=self._get)

    def _put(self, Name, Value, Type, Overwrite=False):
        with self._lock:
            if Name in self.parameters and not Overwrite:
                raise client_error('ParameterAlreadyExists', f"{Name} already exists", 'PutParameter')
            self.parameters[Name] = {'Value': Value, 'Type': Type}
        return {'Version': 1}

    def _get(self, Name, WithDecryption=False):
        with self._lock:
            if Name not in self.parameters:
                raise client_error('ParameterNotFound', f"{Name} not found", 'GetParameter')
            parameter = self.parameters[Name]
        value = parameter['Value']
        if parameter['Type'] == 'SecureString' and not WithDecryption:
            value = 'AQICAHencrypted'
        return {'Parameter': {'Name': Name, 'Type': parameter['Type'], 'Value': value}}


@pytest.fixture
def ssm():
    return InMemorySsm()


@pytest.fixture
def aws_clients(ssm):
    acm = MagicMock()
    counter = iter(range(1, 100))
    acm.import_certificate.side_effect = lambda **kwargs: {
        'CertificateArn': f"arn:aws:acm:us-east-1:123456789012:certificate/{next(counter)}"
    }

    ec2 = MagicMock()
    ec2.describe_client_vpn_endpoints.return_value = {
        'ClientVpnEndpoints': [{
            'ClientVpnEndpointId': ENDPOINT_ID,
            'DnsName': ENDPOINT_DNS,
            'Status': {'Code': 'available'},
        }]
    }

    secretsmanager = MagicMock()
    secretsmanager.create_secret.side_effect = lambda **kwargs: {
        'ARN': f"arn:aws:secretsmanager:us-east-1:123456789012:secret:{kwargs['Name']}",
        'Name': kwargs['Name'],
    }

    return AwsClients(acm=acm, ssm=ssm, ec2=ec2, secretsmanager=secretsmanager)
