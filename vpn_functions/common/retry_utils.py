"""
Retry with exponential backoff and jointly awaited batches of AWS calls
"""
import logging
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, Dict, Mapping, TypeVar

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

TRANSIENT_ERROR_CODES = {
    'Throttling',
    'ThrottlingException',
    'ThrottledException',
    'TooManyRequestsException',
    'RequestLimitExceeded',
    'RequestThrottled',
    'RequestThrottledException',
    'ProvisionedThroughputExceededException',
    'ServiceUnavailable',
    'ServiceUnavailableException',
    'InternalError',
    'InternalFailure',
    'InternalServerError',
    'InternalServiceError',
    'InternalServerErrorException',
    'InternalServiceErrorException',
    'RequestTimeout',
    'RequestTimeoutException',
}

TRANSIENT_EXCEPTIONS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
)


def get_error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', 'Unknown')


def get_error_message(error: BaseException) -> str:
    """Return the AWS error message of a ClientError, or str(error) otherwise"""
    if isinstance(error, ClientError):
        return error.response.get('Error', {}).get('Message') or str(error)
    return str(error)


def is_transient_error(error: BaseException) -> bool:
    """
    Decide whether a failed AWS call is worth retrying

    Args:
        error: Exception raised by a boto3 call

    Returns:
        True for throttling, service-side and connection failures
    """
    if isinstance(error, TRANSIENT_EXCEPTIONS):
        return True
    if isinstance(error, ClientError):
        return get_error_code(error) in TRANSIENT_ERROR_CODES
    return False


class RetryPolicy:
    """
    Exponential backoff: the delay before retry n (1-based) is base_delay * 2 ** (n - 1)
    """

    def __init__(self, max_attempts: int = 5, base_delay: float = 1.0,
                 retryable: Callable[[BaseException], bool] = is_transient_error,
                 sleep: Callable[[float], None] = time.sleep):
        if max_attempts < 1:
            raise ValueError('max_attempts must be at least 1')
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.retryable = retryable
        self.sleep = sleep

    def get_delay(self, attempt: int) -> float:
        return self.base_delay * (2 ** (attempt - 1))

    def call(self, func: Callable[..., T], *args, **kwargs) -> T:
        """
        Invoke func until it succeeds, a non-transient error occurs, or attempts run out

        Raises:
            The last error raised by func
        """
        attempt = 1
        while True:
            try:
                return func(*args, **kwargs)
            except Exception as error:
                if not self.retryable(error) or attempt >= self.max_attempts:
                    raise
                delay = self.get_delay(attempt)
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} of {getattr(func, '__name__', func)} "
                    f"failed with {type(error).__name__}: {error}. Retrying in {delay:.2f}s"
                )
                self.sleep(delay)
                attempt += 1


def run_batch(tasks: Mapping[str, Callable[[], T]], max_workers: int = 4) -> Dict[str, T]:
    """
    Run independent tasks concurrently and wait for all of them

    The batch raises as soon as any member fails. Members that already
    completed are not undone, and members still running are left to finish.

    Args:
        tasks: Mapping of task name to zero-argument callable
        max_workers: Thread pool size

    Returns:
        Mapping of task name to result
    """
    if not tasks:
        return {}

    executor = ThreadPoolExecutor(max_workers=max_workers)
    try:
        future_to_name = {executor.submit(task): name for name, task in tasks.items()}
        done, _ = wait(future_to_name, return_when=FIRST_EXCEPTION)

        for future in done:
            error = future.exception()
            if error is not None:
                logger.error(f"Batch member {future_to_name[future]} failed: {error}")
                raise error

        return {name: future.result() for future, name in future_to_name.items()}
    finally:
        executor.shutdown(wait=False)
