"""
Proxmox VE and VMware ESXi API clients.

Typical use::

    from vmcontrol import load_client

    with load_client('config.yaml', 'proxmox') as client:
        for vm in client.get_all_vms():
            print(vm['vmid'], vm.get('name'))
"""
import os

from .config import ClientConfig, RetryPolicy, build_config, configure_logging, load_config
from .esxi import ESXiClient
from .exceptions import (ArgumentError, AuthenticationError, DecodeError, ObjectDisposedError,
                         RequestFailed, TaskTimeoutError, TransportError, UnexpectedFormat,
                         VmControlError)
from .models import NetworkInterface, Result, UserConfig, VncTicket
from .proxmox import ProxmoxClient
from .vm_builder import (IdAllocator, NextIdAllocator, RandomIdAllocator, SequentialIdAllocator,
                         VmCreateOptions, build_vm_payload)

__version__ = '0.1.0'

CONFIG_ENV = 'VMCONTROL_CONFIG'

CLIENTS = {
    'proxmox': ProxmoxClient,
    'esxi': ESXiClient,
}


def load_client(path=None, platform='proxmox'):
    """
    Build and initialize a client from a YAML config file.

    :param path: Config file; defaults to $VMCONTROL_CONFIG, then ./config.yaml
    :param platform: 'proxmox' or 'esxi'
    :return: An initialized client
    """
    configure_logging()
    if path is None:
        path = os.getenv(CONFIG_ENV, os.path.join(os.getcwd(), 'config.yaml'))
    config = load_config(path, platform)
    client = CLIENTS[platform](config)
    try:
        client.initialize()
    except VmControlError:
        client.dispose()
        raise
    return client


__all__ = [
    'ArgumentError', 'AuthenticationError', 'ClientConfig', 'DecodeError', 'ESXiClient',
    'IdAllocator', 'NetworkInterface', 'NextIdAllocator', 'ObjectDisposedError',
    'ProxmoxClient', 'RandomIdAllocator', 'RequestFailed', 'Result', 'RetryPolicy',
    'SequentialIdAllocator', 'TaskTimeoutError', 'TransportError', 'UnexpectedFormat',
    'UserConfig', 'VmControlError', 'VmCreateOptions', 'VncTicket', 'build_config',
    'build_vm_payload', 'configure_logging', 'load_client', 'load_config',
]
