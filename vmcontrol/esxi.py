import logging
from typing import Dict, List

import requests
from requests.auth import HTTPBasicAuth

from .client import BaseClient
from .exceptions import (ArgumentError, AuthenticationError, DecodeError, RequestFailed,
                         VmControlError)
from .models import as_str, expect_dict, expect_list
from .validation import require, validate_choice

logger = logging.getLogger(__name__)

SESSION_PATH = '/rest/com/vmware/cis/session'
SESSION_HEADER = 'vmware-api-session-id'

GUEST_OS_TYPES = ('windows9_64Guest', 'windows8_64Guest', 'rhel8_64Guest', 'ubuntu64Guest', 'other')

POWER_ACTIONS = ('start', 'stop', 'reset', 'suspend')

# power state name -> REST verb that reaches it
POWER_STATES = {
    'powered_on': 'start',
    'powered_off': 'stop',
    'suspended': 'suspend',
}


class ESXiClient(BaseClient):
    """
    VMware vSphere REST client.

    The login exchanges basic-auth credentials for a session id, which every later
    request carries in the ``vmware-api-session-id`` header. Responses wrap their payload
    in ``{"value": ...}``.
    """
    platform = 'esxi'
    envelope_key = 'value'

    def initialize(self):
        """Log in, then fetch the appliance version to confirm the endpoint answers."""
        super().initialize()
        try:
            self.get_system_info()
        except VmControlError as e:
            raise AuthenticationError(f"Failed to validate ESXi connection: {e}") from e

    def _login(self):
        auth = HTTPBasicAuth(self.config.username, self.config.password)
        try:
            response = self.execute(
                lambda: self._send('POST', SESSION_PATH, auth=auth, authenticated=False),
                allow_reauth=False,
            )
            session_id = self.decode(response)
        except (RequestFailed, DecodeError) as e:
            raise AuthenticationError(f"ESXi authentication failed: {e}") from e
        if not isinstance(session_id, str) or not session_id:
            raise AuthenticationError("Failed to retrieve ESXi session ID")
        return {SESSION_HEADER: session_id}

    def _logout(self, headers):
        try:
            self._send('DELETE', SESSION_PATH, credentials=headers)
        except requests.RequestException as e:
            logger.warning(f"ESXi session logout failed: {e}")

    def get_system_info(self) -> Dict:
        return expect_dict(self._get('/rest/appliance/system/version'))

    def get_virtual_machines(self) -> List[Dict]:
        """
        List virtual machines.

        :return: List of VM summaries ('vm', 'name', 'power_state', ...)
        """
        try:
            vms = expect_list(self._get('/rest/vcenter/vm'))
            logger.info(f"Retrieved {len(vms)} VMs")
            return vms
        except VmControlError as e:
            logger.error(f"Failed to list VMs: {e}")
            raise

    def get_virtual_machine(self, vm_id) -> Dict:
        require(vm_id, 'VM ID')
        try:
            return expect_dict(self._get(f'/rest/vcenter/vm/{vm_id}'))
        except VmControlError as e:
            logger.error(f"Failed to get VM {vm_id}: {e}")
            raise

    def power_operation(self, vm_id, operation) -> bool:
        """
        Change the power state of a VM.

        :param vm_id: VM identifier, e.g. 'vm-42'
        :param operation: start, stop, reset, suspend or a target state
                          (powered_on, powered_off, suspended)
        :return: True on success
        """
        action = POWER_STATES.get(operation, operation)
        validate_choice(action, POWER_ACTIONS, 'power operation')
        require(vm_id, 'VM ID')
        try:
            result = self._call('POST', f'/rest/vcenter/vm/{vm_id}/power/{action}')
            logger.info(f"VM {vm_id} power operation '{action}' done")
            return result
        except VmControlError as e:
            logger.error(f"Failed to perform power operation '{action}' on VM {vm_id}: {e}")
            raise

    def get_vm_hardware(self, vm_id) -> Dict:
        require(vm_id, 'VM ID')
        return expect_dict(self._get(f'/rest/vcenter/vm/{vm_id}/hardware'))

    def update_vm_hardware(self, vm_id, spec: Dict) -> bool:
        require(vm_id, 'VM ID')
        if not spec:
            raise ArgumentError("Hardware spec cannot be empty")
        try:
            result = self._call('PATCH', f'/rest/vcenter/vm/{vm_id}/hardware', json={'spec': spec})
            logger.info(f"Updated hardware of VM {vm_id}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to update hardware of VM {vm_id}: {e}")
            raise

    def get_datastores(self) -> List[Dict]:
        return expect_list(self._get('/rest/vcenter/datastore'))

    def get_networks(self) -> List[Dict]:
        return expect_list(self._get('/rest/vcenter/network'))

    def create_vm(self, spec: Dict) -> str:
        """
        Create a VM.

        :param spec: vSphere create spec ('name', 'guest_OS', 'placement', ...)
        :return: Identifier of the new VM
        """
        require(spec, 'Create spec')
        require(spec.get('name'), 'VM name')
        validate_choice(spec.get('guest_OS'), GUEST_OS_TYPES, 'guest OS')
        try:
            value = self._post('/rest/vcenter/vm', json={'spec': spec})
        except VmControlError as e:
            logger.error(f"Failed to create VM {spec.get('name')}: {e}")
            raise
        vm_id = as_str(value.get('id')) if isinstance(value, dict) else as_str(value)
        if not vm_id:
            raise DecodeError(value, message=f"Create VM response carries no id: {value!r}")
        logger.info(f"Created VM {spec['name']} as {vm_id}")
        return vm_id

    def delete_vm(self, vm_id) -> bool:
        require(vm_id, 'VM ID')
        try:
            result = self._call('DELETE', f'/rest/vcenter/vm/{vm_id}')
            logger.info(f"Deleted VM {vm_id}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to delete VM {vm_id}: {e}")
            raise

    def get_hosts(self) -> List[Dict]:
        return expect_list(self._get('/rest/vcenter/host'))

    def get_host(self, host_id) -> Dict:
        require(host_id, 'Host ID')
        return expect_dict(self._get(f'/rest/vcenter/host/{host_id}'))
