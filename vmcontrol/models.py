from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from .exceptions import ArgumentError, DecodeError

# Decoded JSON: str | int | float | bool | None | list | dict, nested.
JsonValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]

_MISSING = object()


def try_get(value: JsonValue, *path, default=None):
    """
    Walk nested dicts/lists by key or index, returning ``default`` at the first miss.

    >>> try_get({'memory': {'used': 1}}, 'memory', 'used')
    1
    """
    current = value
    for key in path:
        if isinstance(current, dict):
            current = current.get(key, _MISSING)
        elif isinstance(current, list) and isinstance(key, int) and -len(current) <= key < len(current):
            current = current[key]
        else:
            return default
        if current is _MISSING:
            return default
    return current


def as_int(value: JsonValue, default=None) -> Optional[int]:
    """Project a decoded value to int. Proxmox returns many integers as strings."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(float(value)) if isinstance(value, float) else int(str(value).strip())
    except (TypeError, ValueError):
        return default


def as_float(value: JsonValue, default=None) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def as_str(value: JsonValue, default=None) -> Optional[str]:
    if value is None:
        return default
    if isinstance(value, bool):
        return '1' if value else '0'
    if isinstance(value, (dict, list)):
        return default
    return str(value)


def as_bool(value: JsonValue, default=None) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def expect_list(value: JsonValue) -> List[Any]:
    if not isinstance(value, list):
        raise DecodeError(value, message=f"Expected a list, got: {value!r}")
    return value


def expect_dict(value: JsonValue) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise DecodeError(value, message=f"Expected an object, got: {value!r}")
    return value


class ArgumentModel(BaseModel):
    """
    Base for models built from caller input. Bad field values raise ArgumentError.

    Validation of server payloads (``model_validate``/``TypeAdapter``) does not go
    through ``__init__`` and keeps raising pydantic's ValidationError, which the decoder
    reports as DecodeError.
    """
    def __init__(self, **data):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ArgumentError(f"Invalid {type(self).__name__}: {e}") from e


class Result(BaseModel):
    """
    Outcome of a call that must not raise, such as one VM of a batch.

    ``data`` is present only on success, ``error_message`` only on failure.
    """
    success: bool
    data: Any = None
    error_message: Optional[str] = None
    vmid: Optional[Union[int, str]] = None
    name: Optional[str] = None

    @classmethod
    def ok(cls, data=None, **kwargs):
        return cls(success=True, data=data, **kwargs)

    @classmethod
    def fail(cls, error_message, **kwargs):
        return cls(success=False, error_message=error_message, **kwargs)


class UserConfig(ArgumentModel):
    comment: Optional[str] = None
    email: Optional[str] = None
    enable: Optional[bool] = None
    expire: Optional[int] = None
    firstname: Optional[str] = None
    groups: Optional[List[str]] = None
    keys: Optional[str] = None
    lastname: Optional[str] = None
    password: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        """Form parameters for /access/users; empty strings and unset fields are skipped."""
        params = {}
        for field in ('comment', 'email', 'firstname', 'keys', 'lastname', 'password'):
            value = getattr(self, field)
            if value:
                params[field] = value
        if self.enable is not None:
            params['enable'] = '1' if self.enable else '0'
        if self.expire is not None:
            params['expire'] = str(self.expire)
        if self.groups:
            params['groups'] = ','.join(self.groups)
        return params


# read-only state reported by the node, never written back
NETWORK_READ_ONLY_FIELDS = ('iface', 'families', 'active', 'exists', 'priority', 'method6')


class NetworkInterface(ArgumentModel):
    model_config = ConfigDict(extra='ignore')

    iface: Optional[str] = None
    type: Optional[str] = None
    method: Optional[str] = None
    method6: Optional[str] = None
    families: List[str] = []
    active: Optional[int] = None
    exists: Optional[int] = None
    priority: Optional[int] = None
    address: Optional[str] = None
    netmask: Optional[str] = None
    cidr: Optional[str] = None
    gateway: Optional[str] = None
    autostart: Optional[int] = None
    bridge_ports: Optional[str] = None
    bridge_vids: Optional[str] = None
    bridge_fd: Optional[str] = None
    bridge_stp: Optional[str] = None
    bridge_vlan_aware: Optional[int] = None
    comments: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        params = {}
        for field, value in self.model_dump(exclude_none=True).items():
            if field in NETWORK_READ_ONLY_FIELDS:
                continue
            params[field] = str(value)
        return params


class VncTicket(BaseModel):
    model_config = ConfigDict(extra='ignore')

    ticket: str
    port: int
    user: Optional[str] = None
    cert: Optional[str] = None
