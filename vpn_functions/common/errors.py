"""
Error taxonomy for VPN provisioning and normalization of caught faults
"""
from dataclasses import dataclass

UNKNOWN_ERROR_MESSAGE = 'Unknown error'


class VpnProvisioningError(Exception):
    """Base class for every fault raised by the provisioning functions"""
    kind = 'VpnProvisioningError'


class ConfigError(VpnProvisioningError):
    """Missing or invalid configuration"""
    kind = 'ConfigError'


class CryptoError(VpnProvisioningError):
    """Key generation or certificate signing failed"""
    kind = 'CryptoError'


class CertificateImportError(VpnProvisioningError):
    """Certificate import into ACM exhausted its retries"""
    kind = 'CertificateImportError'


class SecretWriteError(VpnProvisioningError):
    """Writing to a secret store exhausted its retries"""
    kind = 'SecretWriteError'


class SecretReadError(VpnProvisioningError):
    """Reading from a secret store exhausted its retries"""
    kind = 'SecretReadError'


class EndpointError(VpnProvisioningError):
    """Client VPN endpoint lookup did not yield a usable DNS name"""
    kind = 'EndpointError'


class NoEndpointsError(EndpointError):
    kind = 'NoEndpointsError'

    def __init__(self):
        super().__init__('No Client VPN endpoints found')


class EndpointUnavailableError(EndpointError):
    kind = 'EndpointUnavailableError'

    def __init__(self, status_code=None):
        self.status_code = status_code
        super().__init__(
            f"Client VPN endpoint is not available. Current status: {status_code or 'undefined'}"
        )


class MissingDnsNameError(EndpointError):
    kind = 'MissingDnsNameError'

    def __init__(self):
        super().__init__('Client VPN endpoint does not have a DNS name')


class UnknownError(VpnProvisioningError):
    """A fault that carried no usable structure"""
    kind = 'UnknownError'

    def __init__(self, message: str = UNKNOWN_ERROR_MESSAGE):
        super().__init__(message)


@dataclass(frozen=True)
class ErrorDetail:
    kind: str
    message: str


def describe_error(error: object) -> ErrorDetail:
    """
    Normalize a caught fault into a tagged error detail

    Exception messages are kept verbatim. Values that are not exceptions, or
    exceptions without a message, map to the UnknownError variant.

    Args:
        error: Whatever was caught at the handler boundary

    Returns:
        ErrorDetail with a kind tag and a human-readable message
    """
    if isinstance(error, VpnProvisioningError):
        return ErrorDetail(kind=error.kind, message=str(error) or UNKNOWN_ERROR_MESSAGE)

    if isinstance(error, BaseException) and str(error):
        return ErrorDetail(kind=type(error).__name__, message=str(error))

    return ErrorDetail(kind=UnknownError.kind, message=UNKNOWN_ERROR_MESSAGE)
