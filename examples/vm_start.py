#!/usr/bin/env python3
"""
Example script to start a VM in Proxmox.

Usage: python vm_start.py <node> <vmid>
"""

import sys

from vmcontrol import VmControlError, load_client


def main():
    if len(sys.argv) != 3:
        print("Usage: python vm_start.py <node> <vmid>")
        sys.exit(1)

    node = sys.argv[1]
    vmid = sys.argv[2]

    try:
        with load_client() as client:
            print(f"Starting VM {vmid} on node {node}...")
            client.start_vm(node, vmid)
            status = client.get_vm_status(node, vmid)
            print(f"VM {vmid} is {status.get('status', 'unknown')}.")

    except VmControlError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
