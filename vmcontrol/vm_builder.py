"""
VM creation payloads.

``VmCreateOptions`` is the options struct for a new QEMU VM: every optional Proxmox
create parameter as a named field, plus the indexed device families (``net0``,
``scsi1``, ...) as ``{index: value}`` mappings. ``build_vm_payload`` turns it into the
sparse request body: a field left as ``None`` is never sent, so the server default
applies.
"""
import random
import re
import string
import threading
from typing import Dict, List, Optional, Union

from .exceptions import ArgumentError
from .models import ArgumentModel
from .validation import (normalize_valid_value, validate_net_config, validate_positive_int,
                         validate_storage, validate_vmid)

IndexedValues = Optional[Dict[int, str]]

# CD-ROM slot used when an ISO image is attached
ISO_SLOT = 'ide2'

DISK_TYPE_REGEX = re.compile(r'^(ide|sata|scsi|virtio)\d+$')

# python field name -> Proxmox key, where they differ
FIELD_KEYS = {
    'amd_sev': 'amd-sev',
    'import_working_storage': 'import-working-storage',
    'live_restore': 'live-restore',
}

# python field name -> Proxmox key prefix
INDEXED_FAMILIES = {
    'hostpci': 'hostpci',
    'ide': 'ide',
    'ipconfig': 'ipconfig',
    'net': 'net',
    'numa_nodes': 'numa',
    'parallel': 'parallel',
    'sata': 'sata',
    'scsi': 'scsi',
    'serial': 'serial',
    'unused': 'unused',
    'usb': 'usb',
    'virtio': 'virtio',
}

# fields that shape the payload but are not Proxmox keys themselves
BUILDER_FIELDS = ('iso', 'disk_type', 'disk_size')

POSITIVE_FIELDS = ('cores', 'sockets', 'memory', 'balloon', 'vcpus')


class VmCreateOptions(ArgumentModel):
    acpi: Optional[bool] = None
    affinity: Optional[str] = None
    agent: Optional[str] = None
    amd_sev: Optional[str] = None
    arch: Optional[str] = None
    archive: Optional[str] = None
    args: Optional[str] = None
    audio0: Optional[str] = None
    autostart: Optional[bool] = None
    balloon: Optional[Union[int, str]] = None
    bios: Optional[str] = None
    boot: Optional[str] = None
    bootdisk: Optional[str] = None
    bwlimit: Optional[int] = None
    cicustom: Optional[str] = None
    cipassword: Optional[str] = None
    citype: Optional[str] = None
    ciupgrade: Optional[bool] = None
    ciuser: Optional[str] = None
    cores: Optional[int] = None
    cpu: Optional[str] = None
    cpulimit: Optional[float] = None
    cpuunits: Optional[int] = None
    description: Optional[str] = None
    efidisk0: Optional[str] = None
    force: Optional[bool] = None
    freeze: Optional[bool] = None
    hookscript: Optional[str] = None
    hotplug: Optional[str] = None
    hugepages: Optional[str] = None
    import_working_storage: Optional[str] = None
    ivshmem: Optional[str] = None
    keephugepages: Optional[bool] = None
    keyboard: Optional[str] = None
    kvm: Optional[bool] = None
    live_restore: Optional[bool] = None
    localtime: Optional[bool] = None
    lock: Optional[str] = None
    machine: Optional[str] = None
    memory: Optional[Union[int, str]] = None
    migrate_downtime: Optional[float] = None
    migrate_speed: Optional[int] = None
    name: Optional[str] = None
    nameserver: Optional[str] = None
    numa: Optional[bool] = None
    onboot: Optional[bool] = None
    ostype: Optional[str] = None
    pool: Optional[str] = None
    protection: Optional[bool] = None
    reboot: Optional[bool] = None
    rng0: Optional[str] = None
    scsihw: Optional[str] = None
    searchdomain: Optional[str] = None
    shares: Optional[int] = None
    smbios1: Optional[str] = None
    smp: Optional[int] = None
    sockets: Optional[int] = None
    spice_enhancements: Optional[str] = None
    sshkeys: Optional[str] = None
    start: Optional[bool] = None
    startdate: Optional[str] = None
    tablet: Optional[bool] = None
    tags: Optional[str] = None
    tdf: Optional[bool] = None
    template: Optional[bool] = None
    tpmstate0: Optional[str] = None
    unique: Optional[bool] = None
    vcpus: Optional[int] = None
    vga: Optional[str] = None
    vmgenid: Optional[str] = None
    vmstatestorage: Optional[str] = None
    watchdog: Optional[str] = None

    hostpci: IndexedValues = None
    ide: IndexedValues = None
    ipconfig: IndexedValues = None
    net: IndexedValues = None
    numa_nodes: IndexedValues = None
    parallel: IndexedValues = None
    sata: IndexedValues = None
    scsi: IndexedValues = None
    serial: IndexedValues = None
    unused: IndexedValues = None
    usb: IndexedValues = None
    virtio: IndexedValues = None

    iso: Optional[str] = None
    disk_type: str = 'scsi0'
    disk_size: Optional[int] = None

    def validate_values(self):
        """Fail fast on values the server would reject."""
        for field in POSITIVE_FIELDS:
            value = getattr(self, field)
            if value is not None:
                validate_positive_int(value, field)
        for field in ('ostype', 'bios'):
            value = getattr(self, field)
            if value is not None:
                normalize_valid_value(field, value)
        for value in (self.net or {}).values():
            validate_net_config(value)
        for field in INDEXED_FAMILIES:
            for index in (getattr(self, field) or {}):
                if index < 0:
                    raise ArgumentError(f"Invalid {field} index {index}: must be >= 0")
        if self.disk_size is not None:
            validate_positive_int(self.disk_size, 'disk_size')
            if not DISK_TYPE_REGEX.match(self.disk_type or ''):
                raise ArgumentError(f"Invalid disk type '{self.disk_type}'")


SCALAR_FIELDS = tuple(
    field for field in VmCreateOptions.model_fields
    if field not in INDEXED_FAMILIES and field not in BUILDER_FIELDS
)


def camel_key(key: str) -> str:
    """Proxmox keys are already lower-case; only a leading capital is folded."""
    return key[:1].lower() + key[1:]


def _encode(field, value):
    if isinstance(value, bool):
        return 1 if value else 0
    if field in ('ostype', 'bios'):
        return normalize_valid_value(field, value)
    if field in POSITIVE_FIELDS:
        return validate_positive_int(value, field)
    return value


def build_vm_payload(vmid, storage, options: Optional[VmCreateOptions] = None) -> Dict[str, object]:
    """
    Assemble the JSON body for POST /nodes/{node}/qemu.

    :param vmid: VM ID for the new machine
    :param storage: Storage that backs the boot disk
    :param options: Optional settings; unset fields are omitted
    :return: Sparse payload dict
    """
    options = options or VmCreateOptions()
    vmid = validate_vmid(vmid)
    validate_storage(storage)
    options.validate_values()

    payload = {'vmid': vmid, 'storage': storage}
    for field in SCALAR_FIELDS:
        value = getattr(options, field)
        if value is None:
            continue
        payload[FIELD_KEYS.get(field, field)] = _encode(field, value)

    if options.disk_size:
        payload[options.disk_type] = f"{storage}:{options.disk_size}"

    if options.iso:
        payload[ISO_SLOT] = f"{options.iso},media=cdrom"

    for field, prefix in INDEXED_FAMILIES.items():
        for index, value in sorted((getattr(options, field) or {}).items()):
            payload[f"{prefix}{index}"] = value

    return {camel_key(key): value for key, value in payload.items() if value is not None}


class IdAllocator:
    """Picks VM IDs for a batch. Collisions are not checked; the create call reports them."""

    def allocate(self, count: int) -> List[int]:
        raise NotImplementedError


class RandomIdAllocator(IdAllocator):
    def __init__(self, low=100, high=99999, rng=None):
        if low < 100 or high < low:
            raise ArgumentError(f"Invalid VMID range {low}-{high}")
        self.low = low
        self.high = high
        self.rng = rng or random.Random()

    def allocate(self, count):
        span = self.high - self.low + 1
        if count > span:
            raise ArgumentError(f"Cannot pick {count} distinct VMIDs from {self.low}-{self.high}")
        return self.rng.sample(range(self.low, self.high + 1), count)


class SequentialIdAllocator(IdAllocator):
    def __init__(self, start):
        self.next_id = validate_vmid(start)
        self._lock = threading.Lock()

    def allocate(self, count):
        with self._lock:
            ids = list(range(self.next_id, self.next_id + count))
            self.next_id += count
        return ids


class NextIdAllocator(IdAllocator):
    """Starts from the cluster's suggested free ID and counts up from there."""

    def __init__(self, client):
        self.client = client

    def allocate(self, count):
        first = self.client.get_next_vmid()
        return list(range(first, first + count))


def generate_names(count, pattern=None, vmids=None, rng=None) -> List[str]:
    """
    Names for a batch of VMs.

    :param count: Number of names
    :param pattern: Format string using ``{index}`` (1-based) and/or ``{vmid}``
    :param vmids: VM IDs matching each index, used by ``{vmid}``
    :param rng: Random source for the fallback names
    :return: List of names
    """
    vmids = vmids or [None] * count
    if pattern:
        try:
            return [pattern.format(index=i + 1, vmid=vmids[i]) for i in range(count)]
        except (KeyError, IndexError, ValueError) as e:
            raise ArgumentError(f"Invalid name pattern '{pattern}': {e}")
    rng = rng or random.Random()
    alphabet = string.ascii_lowercase + string.digits
    names = set()
    while len(names) < count:
        names.add('vm-' + ''.join(rng.choices(alphabet, k=6)))
    return sorted(names)
