import random

import pytest
from unittest.mock import Mock

from vmcontrol.exceptions import ArgumentError, VmControlError
from vmcontrol.vm_builder import (NextIdAllocator, RandomIdAllocator, SequentialIdAllocator,
                                  VmCreateOptions, build_vm_payload, camel_key, generate_names)

NIC = 'virtio=AA:BB:CC:DD:EE:FF,bridge=vmbr0'


class TestBuildVmPayload:

    def test_only_supplied_fields(self):
        payload = build_vm_payload(100, 'local-lvm', VmCreateOptions(name='web', cores=2))

        assert payload == {'vmid': 100, 'storage': 'local-lvm', 'name': 'web', 'cores': 2}

    def test_no_options(self):
        assert build_vm_payload('100', 'local') == {'vmid': 100, 'storage': 'local'}

    def test_indexed_family_expansion(self):
        payload = build_vm_payload(100, 'local', VmCreateOptions(net={0: NIC}))

        assert payload['net0'] == NIC
        assert 'net1' not in payload

    def test_several_families(self):
        options = VmCreateOptions(
            scsi={0: 'local-lvm:32', 1: 'local-lvm:64'},
            usb={2: 'host=1234:5678'},
            serial={0: 'socket'},
            numa_nodes={0: 'cpus=0-1,memory=1024'},
            ipconfig={0: 'ip=dhcp'},
        )

        payload = build_vm_payload(100, 'local', options)

        assert set(payload) == {'vmid', 'storage', 'scsi0', 'scsi1', 'usb2', 'serial0', 'numa0', 'ipconfig0'}
        assert payload['numa0'] == 'cpus=0-1,memory=1024'

    def test_iso_becomes_cdrom(self):
        payload = build_vm_payload(100, 'local', VmCreateOptions(iso='local:iso/debian-12.iso'))

        assert payload['ide2'] == 'local:iso/debian-12.iso,media=cdrom'

    def test_explicit_ide2_wins_over_iso(self):
        options = VmCreateOptions(iso='local:iso/a.iso', ide={2: 'none,media=cdrom'})

        assert build_vm_payload(100, 'local', options)['ide2'] == 'none,media=cdrom'

    def test_disk_from_size(self):
        payload = build_vm_payload(100, 'local-lvm', VmCreateOptions(disk_size=32))

        assert payload['scsi0'] == 'local-lvm:32'

    def test_disk_type(self):
        payload = build_vm_payload(100, 'local-lvm', VmCreateOptions(disk_size=8, disk_type='virtio0'))

        assert payload['virtio0'] == 'local-lvm:8'
        assert 'scsi0' not in payload

    def test_bad_disk_type(self):
        with pytest.raises(ArgumentError):
            build_vm_payload(100, 'local', VmCreateOptions(disk_size=8, disk_type='floppy0'))

    def test_booleans_as_flags(self):
        payload = build_vm_payload(100, 'local', VmCreateOptions(onboot=True, kvm=False, acpi=True))

        assert payload['onboot'] == 1
        assert payload['kvm'] == 0
        assert payload['acpi'] == 1

    def test_hyphenated_keys(self):
        payload = build_vm_payload(100, 'local', VmCreateOptions(amd_sev='type=std', live_restore=True))

        assert payload['amd-sev'] == 'type=std'
        assert payload['live-restore'] == 1
        assert 'amd_sev' not in payload

    def test_values_normalized(self):
        payload = build_vm_payload(100, 'local', VmCreateOptions(ostype='Win11', bios='OVMF', memory='4096'))

        assert payload['ostype'] == 'win11'
        assert payload['bios'] == 'ovmf'
        assert payload['memory'] == 4096

    @pytest.mark.parametrize('options', [
        VmCreateOptions(cores=0),
        VmCreateOptions(memory='lots'),
        VmCreateOptions(balloon=-1),
        VmCreateOptions(ostype='macos'),
        VmCreateOptions(net={0: 'virtio=AA:BB:CC:DD:EE:FF'}),
        VmCreateOptions(net={-1: NIC}),
        VmCreateOptions(disk_size=0),
    ])
    def test_invalid_options(self, options):
        with pytest.raises(ArgumentError):
            build_vm_payload(100, 'local', options)

    @pytest.mark.parametrize('values', [
        {'cores': 'abc'},
        {'acpi': 'sometimes'},
        {'net': {0: None}},
        {'scsi': {'first': 'local:32'}},
    ])
    def test_bad_field_value_is_argument_error(self, values):
        with pytest.raises(VmControlError) as excinfo:
            VmCreateOptions(**values)

        assert isinstance(excinfo.value, ArgumentError)
        assert isinstance(excinfo.value, ValueError)

    @pytest.mark.parametrize('vmid,storage', [(0, 'local'), ('abc', 'local'), (100, ''), (100, 'bad/storage')])
    def test_invalid_identifiers(self, vmid, storage):
        with pytest.raises(ArgumentError):
            build_vm_payload(vmid, storage)

    def test_camel_key(self):
        assert camel_key('Name') == 'name'
        assert camel_key('net0') == 'net0'
        assert camel_key('') == ''


class TestIdAllocators:

    def test_random_ids_are_distinct_and_in_range(self):
        allocator = RandomIdAllocator(low=100, high=120, rng=random.Random(7))

        vmids = allocator.allocate(10)

        assert len(set(vmids)) == 10
        assert all(100 <= vmid <= 120 for vmid in vmids)

    def test_random_range_too_small(self):
        with pytest.raises(ArgumentError):
            RandomIdAllocator(low=100, high=101).allocate(3)

    def test_random_invalid_range(self):
        with pytest.raises(ArgumentError):
            RandomIdAllocator(low=50, high=99)

    def test_sequential_continues(self):
        allocator = SequentialIdAllocator(500)

        assert allocator.allocate(2) == [500, 501]
        assert allocator.allocate(1) == [502]

    def test_next_id_from_cluster(self):
        client = Mock()
        client.get_next_vmid.return_value = 104

        assert NextIdAllocator(client).allocate(3) == [104, 105, 106]


class TestGenerateNames:

    def test_pattern_with_index(self):
        assert generate_names(3, 'web-{index:02d}') == ['web-01', 'web-02', 'web-03']

    def test_pattern_with_vmid(self):
        assert generate_names(2, 'vm{vmid}', vmids=[300, 301]) == ['vm300', 'vm301']

    def test_bad_pattern(self):
        with pytest.raises(ArgumentError):
            generate_names(2, 'web-{host}')

    def test_random_names(self):
        names = generate_names(5, rng=random.Random(1))

        assert len(set(names)) == 5
        assert all(name.startswith('vm-') and len(name) == 9 for name in names)
