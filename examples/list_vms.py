#!/usr/bin/env python3
"""
Example script to list all QEMU VMs in a Proxmox cluster.

Usage: python list_vms.py [config.yaml]
"""

import sys

from vmcontrol import VmControlError, load_client


def main():
    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        with load_client(config_path) as client:
            vms = client.get_all_vms()

            print("VMs in cluster:")
            print("-" * 50)
            for vm in vms:
                print(f"ID: {vm['vmid']}, Name: {vm.get('name', 'N/A')}, Node: {vm['node']}, Status: {vm.get('status', 'unknown')}")

    except VmControlError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
