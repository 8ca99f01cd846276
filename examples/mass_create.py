#!/usr/bin/env python3
"""
Example script to create several identical VMs at once.

Usage: python mass_create.py <node> <storage> <count> [name-pattern]

The name pattern may use {index} and {vmid}, e.g. "lab-{index:02d}".
"""

import sys

from vmcontrol import NextIdAllocator, VmControlError, VmCreateOptions, load_client


def main():
    if len(sys.argv) not in (4, 5):
        print("Usage: python mass_create.py <node> <storage> <count> [name-pattern]")
        sys.exit(1)

    node, storage, count = sys.argv[1], sys.argv[2], sys.argv[3]
    pattern = sys.argv[4] if len(sys.argv) == 5 else None

    template = VmCreateOptions(
        cores=2,
        memory=2048,
        ostype='l26',
        disk_size=16,
        net={0: 'virtio,bridge=vmbr0'},
        iso='local:iso/debian-12.iso',
    )

    try:
        with load_client() as client:
            results = client.create_multiple_vms(node, storage, count, template, pattern,
                                                 id_allocator=NextIdAllocator(client))
    except VmControlError as e:
        print(f"Error: {e}")
        sys.exit(1)

    for result in results:
        if result.success:
            print(f"OK    {result.vmid} {result.name}: {result.data}")
        else:
            print(f"FAIL  {result.vmid} {result.name}: {result.error_message}")

    if not all(r.success for r in results):
        sys.exit(2)


if __name__ == "__main__":
    main()
