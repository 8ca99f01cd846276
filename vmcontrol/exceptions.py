class VmControlError(Exception):
    pass


class AuthenticationError(VmControlError):
    pass


class ArgumentError(VmControlError, ValueError):
    pass


class ObjectDisposedError(VmControlError):
    pass


class TaskTimeoutError(VmControlError):
    pass


class RequestFailed(VmControlError):
    """
    Remote call returned a non-success status (after retries were exhausted).

    :param status_code: HTTP status, or None when no response was received
    :param body: Response body kept for diagnosis
    """
    def __init__(self, status_code, body, message=None):
        self.status_code = status_code
        self.body = body
        if message is None:
            message = f"HTTP {status_code}: {body}"
        super().__init__(message)


class TransportError(RequestFailed):
    """Network-level failure: timeout, refused connection, TLS error."""
    def __init__(self, message):
        super().__init__(None, None, message)


class DecodeError(VmControlError):
    def __init__(self, body, cause=None, message=None):
        self.body = body
        self.cause = cause
        if message is None:
            message = f"Failed to parse response: {body}"
        super().__init__(message)


class UnexpectedFormat(DecodeError):
    def __init__(self, body):
        super().__init__(body, message=f"Unexpected response format: {body}")
