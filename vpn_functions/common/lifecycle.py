"""
CloudFormation custom resource lifecycle handling shared by the VPN functions
"""
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .errors import ConfigError, describe_error

logger = logging.getLogger(__name__)


class RequestType(str, Enum):
    CREATE = 'Create'
    UPDATE = 'Update'
    DELETE = 'Delete'


class LifecycleState(str, Enum):
    RECEIVED = 'RECEIVED'
    PROCESSING = 'PROCESSING'
    SUCCEEDED = 'SUCCEEDED'
    FAILED = 'FAILED'


class ResultStatus(str, Enum):
    SUCCEEDED = 'SUCCESS'
    FAILED = 'FAILED'


@dataclass(frozen=True)
class LifecycleEvent:
    request_type: RequestType
    physical_resource_id: Optional[str] = None
    resource_properties: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, event: Dict[str, Any]) -> 'LifecycleEvent':
        """
        Parse a custom resource event

        Raises:
            ConfigError: for a missing or unrecognized RequestType
        """
        if not isinstance(event, dict):
            raise ConfigError('Lifecycle event must be an object')

        raw_type = event.get('RequestType')
        try:
            request_type = RequestType(raw_type)
        except ValueError:
            raise ConfigError(f"Unsupported RequestType: {raw_type}")

        return cls(
            request_type=request_type,
            physical_resource_id=event.get('PhysicalResourceId') or None,
            resource_properties=event.get('ResourceProperties') or {},
        )


@dataclass
class LifecycleResult:
    status: ResultStatus
    physical_resource_id: str
    reason: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'Status': self.status.value,
            'PhysicalResourceId': self.physical_resource_id,
        }
        if self.reason is not None:
            result['Reason'] = self.reason
        if self.data is not None:
            result['Data'] = self.data
        return result


def new_physical_resource_id(prefix: str) -> str:
    """
    Mint a resource id from a millisecond clock plus a random token

    The token keeps concurrent Create events in the same millisecond apart.
    """
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def success_result(physical_resource_id: str, data: Optional[Dict[str, Any]] = None) -> LifecycleResult:
    return LifecycleResult(
        status=ResultStatus.SUCCEEDED,
        physical_resource_id=physical_resource_id,
        data=data,
    )


def failed_result(physical_resource_id: str, reason: str) -> LifecycleResult:
    return LifecycleResult(
        status=ResultStatus.FAILED,
        physical_resource_id=physical_resource_id,
        reason=reason,
    )


def _prior_physical_id(event: Any) -> Optional[str]:
    if isinstance(event, dict):
        return event.get('PhysicalResourceId') or None
    return None


class LifecycleOrchestrator:
    """
    Maps Create/Update/Delete events onto one provisioning operation

    Delete never calls the operation. Create and Update mint a new physical id
    and pass it to the operation, which uses it to name what it stores. Any
    exception raised while processing becomes a FAILED result.
    """

    def __init__(self, resource_prefix: str,
                 operation: Callable[[LifecycleEvent, str], Dict[str, Any]]):
        self.resource_prefix = resource_prefix
        self.operation = operation
        self.state = LifecycleState.RECEIVED

    @property
    def deleted_id(self) -> str:
        return f"{self.resource_prefix}-deleted"

    @property
    def failed_id(self) -> str:
        return f"{self.resource_prefix}-failed"

    def handle(self, event: Dict[str, Any]) -> LifecycleResult:
        """
        Process one lifecycle event

        Args:
            event: Custom resource event dictionary

        Returns:
            LifecycleResult, never raises
        """
        self.state = LifecycleState.RECEIVED
        prior_id = _prior_physical_id(event)

        try:
            lifecycle_event = LifecycleEvent.from_dict(event)

            if lifecycle_event.request_type == RequestType.DELETE:
                logger.info('Processing DELETE request')
                self.state = LifecycleState.SUCCEEDED
                return success_result(prior_id or self.deleted_id)

            logger.info(f"Processing {lifecycle_event.request_type.value.upper()} request")
            self.state = LifecycleState.PROCESSING

            physical_resource_id = new_physical_resource_id(self.resource_prefix)
            data = self.operation(lifecycle_event, physical_resource_id)

            self.state = LifecycleState.SUCCEEDED
            logger.info(f"Lambda execution completed successfully: {physical_resource_id}")
            logger.info(f"Result data keys: {sorted(data or {})}")
            return success_result(physical_resource_id, data)

        except Exception as error:
            detail = describe_error(error)
            self.state = LifecycleState.FAILED

            logger.error('Lambda execution failed:')
            logger.error(f"Error type: {detail.kind}")
            logger.error(f"Error message: {detail.message}")
            logger.error(f"Event that caused error: {json.dumps(event, default=str)}")

            return failed_result(prior_id or self.failed_id, detail.message)
