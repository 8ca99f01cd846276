import json

import pytest
import requests
from requests.auth import HTTPBasicAuth
from unittest.mock import Mock, patch

from vmcontrol.config import build_config
from vmcontrol.esxi import ESXiClient
from vmcontrol.exceptions import (ArgumentError, AuthenticationError, ObjectDisposedError,
                                  UnexpectedFormat)

BASE = 'https://esxi.example.com'


def make_response(status_code=200, payload=None, text=None):
    response = Mock()
    response.status_code = status_code
    if payload is not None:
        response.json.return_value = payload
        response.text = json.dumps(payload) if text is None else text
    else:
        response.json.side_effect = ValueError('No JSON object could be decoded')
        response.text = text or ''
    return response


def value(payload):
    return make_response(200, {'value': payload})


def make_config(**overrides):
    values = {'url': 'https://esxi.example.com/', 'username': 'administrator@vsphere.local', 'password': 'secret'}
    values.update(overrides)
    return build_config(**values)


@pytest.fixture
def session():
    with patch('vmcontrol.client.requests.Session') as mock_session_class:
        mock_session = Mock()
        mock_session_class.return_value = mock_session
        yield mock_session


@pytest.fixture
def client(session):
    session.request.side_effect = [value('sess-1'), value({'version': '8.0.2'})]
    client = ESXiClient(make_config())
    client.initialize()
    session.request.reset_mock(side_effect=True)
    return client


def last_call(session):
    args, kwargs = session.request.call_args
    return args[0], args[1], kwargs


class TestESXiSession:

    def test_initialize(self, session):
        session.request.side_effect = [value('sess-1'), value({'version': '8.0.2'})]
        client = ESXiClient(make_config())

        client.initialize()

        login, check = session.request.call_args_list
        assert login.args == ('POST', f'{BASE}/rest/com/vmware/cis/session')
        assert login.kwargs['auth'] == HTTPBasicAuth('administrator@vsphere.local', 'secret')
        assert 'vmware-api-session-id' not in login.kwargs['headers']
        assert check.args == ('GET', f'{BASE}/rest/appliance/system/version')
        assert check.kwargs['headers']['vmware-api-session-id'] == 'sess-1'
        assert check.kwargs['auth'] is None

    def test_login_without_session_id(self, session):
        session.request.return_value = make_response(200, {'type': 'error'})
        client = ESXiClient(make_config())

        with pytest.raises(AuthenticationError):
            client.initialize()

    def test_login_with_empty_session_id(self, session):
        session.request.return_value = value('')
        client = ESXiClient(make_config())

        with pytest.raises(AuthenticationError, match="session ID"):
            client.initialize()

    def test_connection_check_fails(self, session):
        session.request.side_effect = [value('sess-1'), make_response(503, text='down')] + [make_response(503)] * 2
        client = ESXiClient(make_config())

        with patch('time.sleep'):
            with pytest.raises(AuthenticationError, match="validate"):
                client.initialize()

    def test_session_refresh_on_401(self, client, session):
        session.request.side_effect = [
            make_response(401, text='unauthenticated'),
            value('sess-2'),
            value([{'vm': 'vm-1', 'name': 'web', 'power_state': 'POWERED_ON'}]),
        ]

        vms = client.get_virtual_machines()

        assert vms[0]['vm'] == 'vm-1'
        assert last_call(session)[2]['headers']['vmware-api-session-id'] == 'sess-2'

    def test_dispose_logs_out_once(self, client, session):
        session.request.return_value = make_response(200, text='')

        client.dispose()
        client.dispose()

        assert session.request.call_count == 1
        method, url, kwargs = last_call(session)
        assert (method, url) == ('DELETE', f'{BASE}/rest/com/vmware/cis/session')
        assert kwargs['headers']['vmware-api-session-id'] == 'sess-1'
        session.close.assert_called_once()

    def test_dispose_survives_logout_failure(self, client, session):
        session.request.side_effect = requests.exceptions.ConnectionError('gone')

        client.dispose()

        assert client.disposed
        session.close.assert_called_once()
        with pytest.raises(ObjectDisposedError):
            client.get_hosts()


class TestESXiOperations:

    def test_get_virtual_machine(self, client, session):
        session.request.return_value = value({'name': 'web', 'guest_OS': 'ubuntu64Guest'})

        vm = client.get_virtual_machine('vm-42')

        assert vm['name'] == 'web'
        assert last_call(session)[1] == f'{BASE}/rest/vcenter/vm/vm-42'

    @pytest.mark.parametrize('operation,verb', [
        ('start', 'start'),
        ('powered_on', 'start'),
        ('powered_off', 'stop'),
        ('suspended', 'suspend'),
        ('reset', 'reset'),
    ])
    def test_power_operation(self, client, session, operation, verb):
        session.request.return_value = make_response(200, text='')

        assert client.power_operation('vm-42', operation) is True

        method, url, _ = last_call(session)
        assert (method, url) == ('POST', f'{BASE}/rest/vcenter/vm/vm-42/power/{verb}')

    def test_power_operation_invalid(self, client, session):
        with pytest.raises(ArgumentError):
            client.power_operation('vm-42', 'invalid_state')

        session.request.assert_not_called()

    def test_update_vm_hardware(self, client, session):
        session.request.return_value = make_response(200, text='')

        client.update_vm_hardware('vm-42', {'upgrade_policy': 'AFTER_CLEAN_SHUTDOWN'})

        method, url, kwargs = last_call(session)
        assert (method, url) == ('PATCH', f'{BASE}/rest/vcenter/vm/vm-42/hardware')
        assert kwargs['json'] == {'spec': {'upgrade_policy': 'AFTER_CLEAN_SHUTDOWN'}}

    def test_update_vm_hardware_empty(self, client, session):
        with pytest.raises(ArgumentError):
            client.update_vm_hardware('vm-42', {})

    def test_create_vm(self, client, session):
        session.request.return_value = value('vm-57')
        spec = {'name': 'web', 'guest_OS': 'ubuntu64Guest', 'placement': {'folder': 'group-v3'}}

        assert client.create_vm(spec) == 'vm-57'

        method, url, kwargs = last_call(session)
        assert (method, url) == ('POST', f'{BASE}/rest/vcenter/vm')
        assert kwargs['json'] == {'spec': spec}

    def test_create_vm_id_object(self, client, session):
        session.request.return_value = value({'id': 'vm-58'})

        assert client.create_vm({'name': 'db', 'guest_OS': 'other'}) == 'vm-58'

    def test_create_vm_unknown_guest(self, client, session):
        with pytest.raises(ArgumentError):
            client.create_vm({'name': 'web', 'guest_OS': 'beos5Guest'})

        session.request.assert_not_called()

    def test_delete_vm(self, client, session):
        session.request.return_value = make_response(200, text='')

        client.delete_vm('vm-57')

        method, url, _ = last_call(session)
        assert (method, url) == ('DELETE', f'{BASE}/rest/vcenter/vm/vm-57')

    @pytest.mark.parametrize('method_name,path', [
        ('get_datastores', '/rest/vcenter/datastore'),
        ('get_networks', '/rest/vcenter/network'),
        ('get_hosts', '/rest/vcenter/host'),
    ])
    def test_listings(self, client, session, method_name, path):
        session.request.return_value = value([{'name': 'item'}])

        assert getattr(client, method_name)() == [{'name': 'item'}]
        assert last_call(session)[1] == f'{BASE}{path}'

    def test_data_envelope_is_not_accepted(self, client, session):
        session.request.return_value = make_response(200, {'data': []})

        with pytest.raises(UnexpectedFormat):
            client.get_hosts()
