from unittest.mock import patch

import pytest
from cryptography import x509
from cryptography.x509.oid import NameOID

from conftest import CERTIFICATE_CONFIG, client_error
from vpn_functions.certificates.certificate_utils import AUTHORITY_COMMON_NAME
from vpn_functions.certificates.generate.lambda_function import RESOURCE_PREFIX, lambda_handler

DATA_KEYS = {
    'caCertPem', 'caKeyPem', 'caRef',
    'serverCertPem', 'serverKeyPem', 'serverRef',
    'clientCertPem', 'clientKeyPem', 'clientRef',
}


def certificate_event(request_type='Create', config=CERTIFICATE_CONFIG, **overrides):
    event = {
        'RequestType': request_type,
        'ResponseURL': 'https://example.com/response',
        'StackId': 'arn:aws:cloudformation:us-east-1:123456789012:stack/test-stack',
        'RequestId': 'test-request-id',
        'ResourceType': 'AWS::CloudFormation::CustomResource',
        'LogicalResourceId': 'CertificateGenerator',
        'ResourceProperties': {'Config': config},
    }
    event.update(overrides)
    return event


def common_name(pem):
    certificate = x509.load_pem_x509_certificate(pem.encode('ascii'))
    return certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value


@pytest.fixture
def fast_batch(certificate_batch):
    # Key generation is slow; reuse the session batch
    with patch(
        'vpn_functions.certificates.generate.lambda_function.generate_certificate_batch',
        return_value=certificate_batch,
    ) as generate:
        yield generate


def test_create_generates_imports_and_stores(aws_clients, ssm):
    result = lambda_handler(certificate_event(), None, clients=aws_clients)

    assert result['Status'] == 'SUCCESS'
    assert result['PhysicalResourceId'].startswith(f"{RESOURCE_PREFIX}-")
    assert set(result['Data']) == DATA_KEYS

    data = result['Data']
    assert common_name(data['caCertPem']) == AUTHORITY_COMMON_NAME
    assert common_name(data['serverCertPem']) == 'server'
    assert common_name(data['clientCertPem']) == 'client'
    assert len({data['caRef'], data['serverRef'], data['clientRef']}) == 3
    assert aws_clients.acm.import_certificate.call_count == 3

    resource_id = result['PhysicalResourceId']
    assert ssm.parameters[f"/vpn/{resource_id}/ca-certificate"] == {
        'Value': data['caCertPem'], 'Type': 'String'
    }
    assert ssm.parameters[f"/vpn/{resource_id}/ca-private-key"] == {
        'Value': data['caKeyPem'], 'Type': 'SecureString'
    }
    assert ssm.parameters[f"/vpn/{resource_id}/client-certificate"]['Value'] == data['clientCertPem']
    assert ssm.parameters[f"/vpn/{resource_id}/client-private-key"]['Type'] == 'SecureString'
    assert len(ssm.parameters) == 4


def test_update_is_treated_as_create(aws_clients, fast_batch):
    result = lambda_handler(
        certificate_event('Update', PhysicalResourceId=f"{RESOURCE_PREFIX}-1"), None, clients=aws_clients
    )

    assert result['Status'] == 'SUCCESS'
    assert result['PhysicalResourceId'] != f"{RESOURCE_PREFIX}-1"
    fast_batch.assert_called_once()


def test_namespace_from_environment(monkeypatch, aws_clients, ssm, fast_batch):
    monkeypatch.setenv('VPN_PARAMETER_NAMESPACE', 'client-vpn/')

    result = lambda_handler(certificate_event(), None, clients=aws_clients)

    assert f"/client-vpn/{result['PhysicalResourceId']}/ca-certificate" in ssm.parameters


def test_delete_makes_no_calls(aws_clients):
    event = certificate_event('Delete', PhysicalResourceId=f"{RESOURCE_PREFIX}-123")

    for _ in range(2):
        result = lambda_handler(event, None, clients=aws_clients)
        assert result == {'Status': 'SUCCESS', 'PhysicalResourceId': f"{RESOURCE_PREFIX}-123"}

    aws_clients.acm.import_certificate.assert_not_called()
    aws_clients.ssm.put_parameter.assert_not_called()


def test_delete_without_physical_id():
    result = lambda_handler(certificate_event('Delete'), None)

    assert result['PhysicalResourceId'] == 'certificate-generator-deleted'


def test_null_config_fails():
    result = lambda_handler(certificate_event(config=None), None)

    assert result == {
        'Status': 'FAILED',
        'PhysicalResourceId': 'certificate-generator-failed',
        'Reason': "Cannot read property 'keySize' of null config",
    }


def test_import_failure_reports_failed(aws_clients, ssm, fast_batch):
    aws_clients.acm.import_certificate.side_effect = client_error(
        'ThrottlingException', 'Rate exceeded', 'ImportCertificate'
    )

    result = lambda_handler(
        certificate_event('Update', PhysicalResourceId=f"{RESOURCE_PREFIX}-123"), None, clients=aws_clients
    )

    assert result['Status'] == 'FAILED'
    assert result['PhysicalResourceId'] == f"{RESOURCE_PREFIX}-123"
    assert result['Reason'] == 'Failed to import certificate into ACM: Rate exceeded'
    assert aws_clients.acm.import_certificate.call_count >= 5
    assert ssm.parameters == {}


def test_parameter_write_failure_reports_failed(aws_clients, fast_batch):
    aws_clients.ssm.put_parameter.side_effect = client_error(
        'AccessDeniedException', 'not authorized to perform ssm:PutParameter', 'PutParameter'
    )

    result = lambda_handler(certificate_event(), None, clients=aws_clients)

    assert result['Status'] == 'FAILED'
    assert 'not authorized to perform ssm:PutParameter' in result['Reason']


def test_invalid_retry_setting_reports_failed(monkeypatch, aws_clients):
    monkeypatch.setenv('RETRY_MAX_ATTEMPTS', 'many')

    result = lambda_handler(certificate_event(), None, clients=aws_clients)

    assert result['Status'] == 'FAILED'
    assert result['Reason'] == "RETRY_MAX_ATTEMPTS must be an integer, got 'many'"


def test_unexpected_fault_without_message(aws_clients):
    with patch(
        'vpn_functions.certificates.generate.lambda_function.generate_certificate_batch',
        side_effect=RuntimeError(),
    ):
        result = lambda_handler(certificate_event(), None, clients=aws_clients)

    assert result['Status'] == 'FAILED'
    assert result['Reason'] == 'Unknown error'
    assert result['PhysicalResourceId'] == 'certificate-generator-failed'
