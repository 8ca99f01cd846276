import pytest

from vmcontrol.exceptions import ArgumentError
from vmcontrol.validation import (normalize_valid_value, require, validate_config_changes,
                                  validate_net_config, validate_node, validate_positive_int,
                                  validate_storage, validate_userid, validate_vmid)


class TestIdentifiers:

    @pytest.mark.parametrize('vmid,expected', [(100, 100), ('101', 101), ('999999', 999999)])
    def test_valid_vmid(self, vmid, expected):
        assert validate_vmid(vmid) == expected

    @pytest.mark.parametrize('vmid', [0, '0', -5, 'abc', '1.5', '', None, True])
    def test_invalid_vmid(self, vmid):
        with pytest.raises(ArgumentError):
            validate_vmid(vmid)

    def test_argument_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_vmid('abc')

    @pytest.mark.parametrize('node', ['pve1', 'pve-node.lan', 'node_2'])
    def test_valid_node(self, node):
        assert validate_node(node) == node

    @pytest.mark.parametrize('node', ['', None, 'pve 1', 'pve/1', '../etc'])
    def test_invalid_node(self, node):
        with pytest.raises(ArgumentError):
            validate_node(node)

    def test_storage(self):
        assert validate_storage('local-lvm') == 'local-lvm'
        with pytest.raises(ArgumentError):
            validate_storage('local lvm')

    def test_userid(self):
        assert validate_userid('bob@pve') == 'bob@pve'
        for userid in ('bob', '@pve', 'bob@', 'bob@pve@pam', ''):
            with pytest.raises(ArgumentError):
                validate_userid(userid)

    def test_require(self):
        assert require('x', 'Name') == 'x'
        with pytest.raises(ArgumentError, match="Name cannot be empty"):
            require('   ', 'Name')


class TestValues:

    @pytest.mark.parametrize('value,expected', [(4, 4), ('4', 4), (' 8 ', 8)])
    def test_positive_int(self, value, expected):
        assert validate_positive_int(value, 'cores') == expected

    @pytest.mark.parametrize('value', [0, -1, '0', 'four', 1.5, None, True, ''])
    def test_not_positive_int(self, value):
        with pytest.raises(ArgumentError, match="Invalid numeric value for cores"):
            validate_positive_int(value, 'cores')

    def test_valid_values_are_lowercased(self):
        assert normalize_valid_value('ostype', 'L26') == 'l26'
        assert normalize_valid_value('bios', 'SeaBIOS') == 'seabios'

    def test_valid_values_allow_list(self):
        with pytest.raises(ArgumentError, match="Invalid value for ostype"):
            normalize_valid_value('ostype', 'win12')


class TestNetConfig:

    @pytest.mark.parametrize('config', [
        'virtio=AA:BB:CC:DD:EE:FF,bridge=vmbr0',
        'e1000,bridge=vmbr1,firewall=1',
        'model=rtl8139,bridge=vmbr0,tag=20',
        'vmxnet3=aa:bb:cc:dd:ee:ff, bridge=vmbr2',
    ])
    def test_valid(self, config):
        assert validate_net_config(config) == config

    @pytest.mark.parametrize('config', [
        'virtio=AA:BB:CC:DD:EE:FF',
        'virtio,firewall=1',
        'virtio,bridge=',
        'ne2k_pci,bridge=vmbr0',
        'model=pcnet,bridge=vmbr0',
        'virtio=AA:BB:CC,bridge=vmbr0',
        '',
    ])
    def test_invalid(self, config):
        with pytest.raises(ArgumentError):
            validate_net_config(config)


class TestConfigChanges:

    def test_normalizes_everything(self):
        changes = validate_config_changes({
            'cores': 4,
            'sockets': '2',
            'onboot': 'true',
            'ostype': 'Win10',
            'name': 'web',
            'balloon': None,
        })

        assert changes == {'cores': '4', 'sockets': '2', 'onboot': '1', 'ostype': 'win10', 'name': 'web'}

    @pytest.mark.parametrize('value,expected', [(True, '1'), (1, '1'), ('1', '1'), (False, '0'), ('no', '0')])
    def test_onboot(self, value, expected):
        assert validate_config_changes({'onboot': value}) == {'onboot': expected}

    def test_input_is_not_mutated(self):
        changes = {'memory': 1024}

        validate_config_changes(changes)

        assert changes == {'memory': 1024}
