import re

from .exceptions import ArgumentError

VMID_REGEX = re.compile(r'^\d+$')  # VMID: digits only
NODE_REGEX = re.compile(r'^[a-zA-Z0-9_.-]+$')  # node names: alphanumeric, dots, hyphens, underscores
STORAGE_REGEX = re.compile(r'^[a-zA-Z0-9_.-]+$')
USERID_REGEX = re.compile(r'^[^@\s]+@[^@\s]+$')  # name@realm
MAC_REGEX = re.compile(r'^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$')

NIC_MODELS = ('virtio', 'e1000', 'rtl8139', 'vmxnet3')

PROXMOX_POWER_ACTIONS = ('start', 'stop', 'reset', 'shutdown', 'reboot', 'suspend', 'resume')

VALID_VALUES = {
    'ostype': ('other', 'wxp', 'w2k', 'w2k3', 'w2k8', 'wvista', 'win7', 'win8', 'win10', 'win11', 'l24', 'l26', 'solaris'),
    'bios': ('seabios', 'ovmf'),
}

NUMERIC_FIELDS = ('memory', 'balloon', 'cores', 'sockets')


def require(value, name):
    """Reject None and blank strings for a required identifier."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ArgumentError(f"{name} cannot be empty")
    return value


def validate_vmid(vmid):
    """Validate VMID: must be digits, >0"""
    if isinstance(vmid, bool) or not VMID_REGEX.match(str(vmid)):
        raise ArgumentError(f"Invalid VMID '{vmid}': must be a positive integer")
    vmid_int = int(vmid)
    if vmid_int <= 0:
        raise ArgumentError(f"Invalid VMID '{vmid}': must be > 0")
    return vmid_int


def validate_node(node):
    """Validate node name"""
    if not node or not NODE_REGEX.match(str(node)):
        raise ArgumentError(f"Invalid node name '{node}': must contain only letters, numbers, dots, hyphens, underscores")
    return node


def validate_storage(storage):
    """Validate storage name"""
    if not storage or not STORAGE_REGEX.match(str(storage)):
        raise ArgumentError(f"Invalid storage name '{storage}': must contain only letters, numbers, dots, hyphens, underscores")
    return storage


def validate_userid(userid):
    require(userid, 'User ID')
    if not USERID_REGEX.match(userid):
        raise ArgumentError(f"Invalid user ID '{userid}': expected 'name@realm'")
    return userid


def validate_choice(value, allowed, name):
    if value not in allowed:
        raise ArgumentError(f"Invalid {name} '{value}': must be one of {', '.join(allowed)}")
    return value


def validate_positive_int(value, name):
    """
    Parse a config value as a positive integer.

    Accepts ints and digit strings; bools are rejected even though they are ints.
    """
    if isinstance(value, bool):
        raise ArgumentError(f"Invalid numeric value for {name}: {value}")
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ArgumentError(f"Invalid numeric value for {name}: {value}")
    if number <= 0:
        raise ArgumentError(f"Invalid numeric value for {name}: {value}")
    return number


def normalize_valid_value(key, value):
    """Lower-case an ostype/bios value and check it against the allow-list."""
    normalized = str(value).lower()
    if normalized not in VALID_VALUES[key]:
        raise ArgumentError(f"Invalid value for {key}: {value}")
    return normalized


def validate_net_config(value):
    """
    Validate a NIC definition such as ``virtio=AA:BB:CC:DD:EE:FF,bridge=vmbr0``.

    The first clause names the model, either as ``<model>[=<mac>]`` or ``model=<model>``.
    A ``bridge=`` clause is mandatory.
    """
    parts = [p.strip() for p in str(value).split(',')]
    if len(parts) < 2:
        raise ArgumentError(f"Invalid network configuration: {value}")
    key, _, rest = parts[0].partition('=')
    model = rest if key == 'model' else key
    if model not in NIC_MODELS:
        raise ArgumentError(f"Invalid network model: {model}")
    if key != 'model' and rest and not MAC_REGEX.match(rest):
        raise ArgumentError(f"Invalid MAC address: {rest}")
    if not any(p.startswith('bridge=') and len(p) > len('bridge=') for p in parts):
        raise ArgumentError("Network configuration must include bridge")
    return value


def validate_config_changes(changes):
    """
    Validate and normalize a VM config update.

    :param changes: Mapping of Proxmox config keys to values
    :return: New dict with string values ready for a form-encoded body
    """
    validated = {}
    for key, value in changes.items():
        if value is None:
            continue
        if re.match(r'^net\d+$', key):
            validated[key] = validate_net_config(value)
        elif key in VALID_VALUES:
            validated[key] = normalize_valid_value(key, value)
        elif key in NUMERIC_FIELDS:
            validated[key] = str(validate_positive_int(value, key))
        elif key == 'onboot':
            validated[key] = '1' if str(value).lower() in ('1', 'true') else '0'
        else:
            validated[key] = str(value)
    return validated
