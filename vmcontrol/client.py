import logging
import threading
import time
from typing import Callable, Dict, Optional

import requests
import urllib3
from pydantic import TypeAdapter, ValidationError
from urllib3.exceptions import InsecureRequestWarning

from .config import ClientConfig
from .exceptions import (DecodeError, ObjectDisposedError, RequestFailed, TransportError,
                         UnexpectedFormat)

logger = logging.getLogger(__name__)

UNAUTHORIZED = 401


def is_success(response) -> bool:
    return 200 <= response.status_code < 300


class SessionState:
    """
    Credential headers shared by every request of one client.

    Writers replace the whole header dict under the lock and readers copy it under the
    same lock, so a reader sees either the previous credential pair or the new one.
    """
    def __init__(self):
        self.lock = threading.RLock()
        self._headers: Dict[str, str] = {}
        self.disposed = False

    def replace(self, headers: Dict[str, str]):
        with self.lock:
            if self.disposed:
                return
            self._headers = dict(headers)

    def snapshot(self) -> Dict[str, str]:
        with self.lock:
            return dict(self._headers)

    def clear(self):
        with self.lock:
            self._headers = {}

    @property
    def authenticated(self) -> bool:
        with self.lock:
            return bool(self._headers)


class BaseClient:
    """
    Shared plumbing for the hypervisor clients: transport, session handling, the retry
    loop and response envelope decoding. Subclasses provide ``_login`` and, optionally,
    ``_logout``.
    """
    platform = 'base'
    envelope_key = 'data'
    base_headers = {'Accept': 'application/json'}

    def __init__(self, config: ClientConfig):
        """
        Initialize the client. No network I/O happens until ``initialize()``.

        :param config: Validated ClientConfig
        """
        self.config = config
        self.retry_policy = config.retry_policy
        self.session = requests.Session()
        # management endpoints usually run self-signed certificates
        self.session.verify = config.verify_ssl
        if not config.verify_ssl:
            urllib3.disable_warnings(InsecureRequestWarning)
        self._state = SessionState()
        self._auth_lock = threading.Lock()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()
        return False

    @property
    def disposed(self) -> bool:
        return self._state.disposed

    @property
    def url(self) -> str:
        return self.config.url

    def initialize(self):
        """Perform the initial login handshake. Must be called before any other operation."""
        self._ensure_not_disposed()
        self.authenticate()
        logger.info(f"{self.platform} client connected to {self.url}")

    def authenticate(self):
        """
        Log in and replace the credential headers used by all later requests.

        Safe to call repeatedly; each call discards the previous session headers.
        """
        self._ensure_not_disposed()
        with self._auth_lock:
            headers = self._login()
            self._state.replace(headers)
        logger.info(f"Authenticated as {self.config.username} on {self.url}")

    def _login(self) -> Dict[str, str]:
        raise NotImplementedError

    def _logout(self, headers: Dict[str, str]):
        pass

    def dispose(self):
        """
        Release the transport and attempt a server-side logout. Idempotent.

        Only the disposed flag and the credential snapshot are taken under the session
        lock; the logout request runs outside it so concurrent readers are not blocked.
        """
        with self._state.lock:
            if self._state.disposed:
                return
            self._state.disposed = True
            headers = self._state.snapshot()
        try:
            if headers:
                self._logout(headers)
        finally:
            self._state.clear()
            self.session.close()
        logger.info(f"{self.platform} client for {self.url} disposed")

    def _ensure_not_disposed(self):
        if self._state.disposed:
            raise ObjectDisposedError(f"{type(self).__name__} has been disposed")

    def _url(self, path: str) -> str:
        if not path.startswith('/'):
            path = f'/{path}'
        return f"{self.url}{path}"

    def _send(self, method, path, params=None, data=None, json=None, auth=None, authenticated=True,
              credentials=None):
        """
        Send a single attempt, reading the current credential headers.

        :param credentials: Explicit credential headers to use instead of the session's
        """
        headers = dict(self.base_headers)
        if credentials is not None:
            headers.update(credentials)
        elif authenticated:
            headers.update(self._state.snapshot())
        return self.session.request(
            method,
            self._url(path),
            params=params,
            data=data,
            json=json,
            headers=headers,
            auth=auth,
            verify=self.config.verify_ssl,
            timeout=self.config.timeout,
        )

    def execute(self, request_factory: Callable[[], requests.Response], allow_reauth=True) -> requests.Response:
        """
        Run a request with the client's retry policy.

        :param request_factory: Callable producing a fresh attempt each time it is invoked
        :param allow_reauth: Re-authenticate once per 401 before replaying
        :return: The first successful response
        :raises ObjectDisposedError: If the client was disposed, before any I/O
        :raises RequestFailed: With the last status and body once attempts are exhausted
        :raises TransportError: If the last attempt failed at network level
        """
        policy = self.retry_policy
        last_error: Optional[RequestFailed] = None
        for attempt in range(1, policy.max_retries + 1):
            self._ensure_not_disposed()
            try:
                response = request_factory()
            except requests.RequestException as e:
                last_error = self._transport_error(e)
                logger.warning(f"Attempt {attempt}/{policy.max_retries} failed: {last_error}")
            else:
                if is_success(response):
                    return response
                if response.status_code == UNAUTHORIZED and allow_reauth and attempt < policy.max_retries:
                    logger.info("Session rejected with 401, re-authenticating")
                    self.authenticate()
                    continue
                last_error = RequestFailed(response.status_code, response.text)
                logger.warning(f"Attempt {attempt}/{policy.max_retries} failed: HTTP {response.status_code}")
            if attempt < policy.max_retries:
                time.sleep(policy.delay_for(attempt))
        raise last_error

    @staticmethod
    def _transport_error(error):
        if isinstance(error, requests.exceptions.Timeout):
            wrapped = TransportError("Request timed out")
        elif isinstance(error, requests.exceptions.SSLError):
            wrapped = TransportError("SSL verification failed")
        elif isinstance(error, requests.exceptions.ConnectionError):
            wrapped = TransportError(f"Connection failed: {error}")
        else:
            wrapped = TransportError(f"Request failed: {error}")
        wrapped.__cause__ = error
        return wrapped

    def decode(self, response, model=None):
        """
        Unwrap the response envelope.

        :param response: A response returned by ``execute``
        :param model: Optional type (pydantic model, ``List[Model]``, ...) to validate into
        :return: The envelope payload, validated into ``model`` when given
        """
        body = response.text
        if not is_success(response):
            raise RequestFailed(response.status_code, body)
        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(body, e) from e
        if not isinstance(payload, dict) or self.envelope_key not in payload:
            raise UnexpectedFormat(body)
        data = payload[self.envelope_key]
        if model is None:
            return data
        try:
            return TypeAdapter(model).validate_python(data)
        except ValidationError as e:
            raise DecodeError(body, e) from e

    def _request(self, method, path, model=None, **kwargs):
        response = self.execute(lambda: self._send(method, path, **kwargs))
        return self.decode(response, model)

    def _call(self, method, path, **kwargs) -> bool:
        """Run a mutating call whose body is not needed."""
        response = self.execute(lambda: self._send(method, path, **kwargs))
        return is_success(response)

    def _get(self, path, params=None, model=None):
        return self._request('GET', path, model=model, params=params)

    def _post(self, path, data=None, json=None, model=None):
        return self._request('POST', path, model=model, data=data, json=json)
