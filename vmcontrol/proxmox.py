import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional
from urllib.parse import quote

from .client import BaseClient
from .exceptions import (ArgumentError, AuthenticationError, DecodeError, RequestFailed,
                         TaskTimeoutError, VmControlError)
from .models import (NetworkInterface, Result, UserConfig, VncTicket, as_bool, as_int, as_str,
                     expect_dict, expect_list)
from .validation import (PROXMOX_POWER_ACTIONS, require, validate_choice, validate_config_changes,
                         validate_net_config, validate_node, validate_positive_int,
                         validate_storage, validate_userid, validate_vmid)
from .vm_builder import (RandomIdAllocator, VmCreateOptions, build_vm_payload,
                         generate_names)

logger = logging.getLogger(__name__)

API_PREFIX = '/api2/json'

DEFAULT_CPU_TYPES = [
    'kvm64', 'host', 'Opteron_G1', 'Opteron_G2', 'Opteron_G3', 'EPYC', 'Nehalem',
    'Westmere', 'SandyBridge', 'IvyBridge', 'Haswell', 'Broadwell', 'Skylake-Server',
]

OS_TYPES = ['Linux', 'Windows', 'Solaris', 'Other']

OS_VERSIONS = {
    'linux': ['6.x - 2.6 Kernel', '2.6 Kernel'],
    'windows': ['11/2022/2025', '10/2016/2019', '8.x/2012/2012r2', '7/2008r2', 'Vista/2008', 'Xp/2003', '2000'],
    'solaris': ['Solaris Kernel'],
}

NETWORK_TYPES = ('bridge', 'bond', 'eth', 'alias', 'vlan', 'OVSBridge', 'OVSBond', 'OVSPort', 'OVSIntPort')


def _path(*parts):
    return API_PREFIX + ''.join(f'/{quote(str(p), safe="@!")}' for p in parts)


class ProxmoxClient(BaseClient):
    """
    Proxmox VE API client using the ticket/cookie flow.

    Usage::

        with ProxmoxClient(config) as client:
            client.initialize()
            client.start_vm('pve1', 101)
    """
    platform = 'proxmox'
    envelope_key = 'data'

    def __init__(self, config):
        super().__init__(config)
        self.vms = VM(self)
        self.nodes = Node(self)
        self.storage = Storage(self)
        self.network = Network(self)
        self.access = Access(self)
        self.pools = Pool(self)

    @property
    def login_username(self) -> str:
        username = self.config.username
        if '@' in username:
            return username
        return f"{username}@{self.config.realm}"

    def _login(self):
        form = {'username': self.login_username, 'password': self.config.password}
        try:
            response = self.execute(
                lambda: self._send('POST', _path('access', 'ticket'), data=form, authenticated=False),
                allow_reauth=False,
            )
            data = self.decode(response)
        except (RequestFailed, DecodeError) as e:
            raise AuthenticationError(f"Authentication failed: {e}") from e
        ticket = data.get('ticket') if isinstance(data, dict) else None
        csrf_token = data.get('CSRFPreventionToken') if isinstance(data, dict) else None
        if not ticket or not csrf_token:
            raise AuthenticationError("Authentication failed: ticket or CSRF token missing from response")
        return {
            'Cookie': f'PVEAuthCookie={ticket}',
            'CSRFPreventionToken': csrf_token,
        }

    def _put(self, path, data=None):
        return self._call('PUT', path, data=data)

    def _delete(self, path, params=None):
        return self._call('DELETE', path, params=params)

    # Nodes and cluster
    def get_nodes(self) -> List[Dict]:
        """
        List cluster nodes.

        :return: List of node dictionaries
        """
        try:
            nodes = expect_list(self._get(_path('nodes')))
            logger.info(f"Retrieved {len(nodes)} nodes")
            return nodes
        except VmControlError as e:
            logger.error(f"Failed to list nodes: {e}")
            raise

    def get_node_status(self, node) -> Dict:
        validate_node(node)
        try:
            return expect_dict(self._get(_path('nodes', node, 'status')))
        except VmControlError as e:
            logger.error(f"Failed to get status for node {node}: {e}")
            raise

    def get_cluster_resources(self, resource_type=None) -> List[Dict]:
        params = {'type': resource_type} if resource_type else None
        try:
            return expect_list(self._get(_path('cluster', 'resources'), params))
        except VmControlError as e:
            logger.error(f"Failed to list cluster resources: {e}")
            raise

    def get_next_vmid(self) -> int:
        """
        Ask the cluster for a free VM ID.

        :return: VM ID suggested by /cluster/nextid
        """
        data = self._get(_path('cluster', 'nextid'))
        vmid = as_int(data)
        if vmid is None or vmid <= 0:
            raise DecodeError(data, message=f"Failed to parse next VM ID from cluster response: {data!r}")
        return vmid

    def poll_task(self, node, upid, timeout=300, poll_interval=5):
        """
        Poll a node task until completion.

        :param node: Node name
        :param upid: Unique Process ID
        :param timeout: Timeout in seconds
        :param poll_interval: Initial polling interval in seconds (with backoff)
        :return: Dict with 'success', 'exitstatus', 'status'
        """
        path = _path('nodes', node, 'tasks', upid, 'status')
        start_time = time.time()
        current_interval = poll_interval
        while time.time() - start_time < timeout:
            status = expect_dict(self._get(path))
            task_status = status.get('status')
            exitstatus = status.get('exitstatus', 'OK')
            if task_status == 'stopped':
                success = exitstatus == 'OK'
                if success:
                    logger.info(f"Task {upid} completed successfully")
                else:
                    logger.error(f"Task {upid} failed with exitstatus: {exitstatus}")
                return {'success': success, 'exitstatus': exitstatus, 'status': 'stopped'}
            elif task_status == 'running':
                logger.debug(f"Task {upid} still running...")
            else:
                logger.warning(f"Task {upid} in unknown status: {task_status}")
            time.sleep(min(current_interval, 30))
            current_interval *= 1.5
        raise TaskTimeoutError(f"Task {upid} timed out after {timeout} seconds")

    # VMs
    def get_vms_for_node(self, node) -> List[Dict]:
        validate_node(node)
        try:
            vms = expect_list(self._get(_path('nodes', node, 'qemu')))
            logger.info(f"Retrieved {len(vms)} VMs on node {node}")
            return vms
        except VmControlError as e:
            logger.error(f"Failed to list VMs on node {node}: {e}")
            raise

    def get_all_vms(self) -> List[Dict]:
        """
        List QEMU VMs of every node, each annotated with its 'node'.

        :return: List of VM dictionaries
        """
        all_vms = []
        for node in self.get_nodes():
            node_name = as_str(node.get('node'))
            if not node_name:
                continue
            for vm in self.get_vms_for_node(node_name):
                vm['node'] = node_name
                all_vms.append(vm)
        return all_vms

    def get_vm_config(self, node, vmid) -> Dict:
        validate_node(node)
        vmid = validate_vmid(vmid)
        try:
            config = expect_dict(self._get(_path('nodes', node, 'qemu', vmid, 'config')))
            logger.info(f"Retrieved config for VM {vmid}")
            return config
        except VmControlError as e:
            logger.error(f"Failed to get config for VM {vmid}: {e}")
            raise

    def get_vm_status(self, node, vmid) -> Dict:
        validate_node(node)
        vmid = validate_vmid(vmid)
        try:
            return expect_dict(self._get(_path('nodes', node, 'qemu', vmid, 'status', 'current')))
        except VmControlError as e:
            logger.error(f"Failed to get status for VM {vmid}: {e}")
            raise

    def update_vm_config(self, node, vmid, changes) -> bool:
        """
        Update VM configuration after local validation.

        Network entries need a supported model and a bridge, ostype/bios are checked and
        lower-cased, memory/balloon/cores/sockets must be positive integers.

        :param node: Node name
        :param vmid: VM ID
        :param changes: Mapping of config keys to new values
        :return: True on success
        """
        validate_node(node)
        vmid = validate_vmid(vmid)
        validated = validate_config_changes(changes)
        if not validated:
            raise ArgumentError("No configuration changes given")
        try:
            result = self._call('POST', _path('nodes', node, 'qemu', vmid, 'config'), data=validated)
            logger.info(f"Updated config for VM {vmid}: {', '.join(sorted(validated))}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to update config for VM {vmid}: {e}")
            raise

    def _update_config(self, node, vmid, params, what):
        validate_node(node)
        vmid = validate_vmid(vmid)
        try:
            result = self._put(_path('nodes', node, 'qemu', vmid, 'config'), params)
            logger.info(f"Updated {what} for VM {vmid}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to update {what} for VM {vmid}: {e}")
            raise

    def vm_power(self, node, vmid, action) -> bool:
        """
        Run a power action on a VM.

        :param node: Node name
        :param vmid: VM ID
        :param action: One of start, stop, reset, shutdown, reboot, suspend, resume
        :return: True on success
        """
        validate_choice(action, PROXMOX_POWER_ACTIONS, 'power action')
        validate_node(node)
        vmid = validate_vmid(vmid)
        try:
            result = self._call('POST', _path('nodes', node, 'qemu', vmid, 'status', action))
            logger.info(f"VM {vmid} action '{action}' initiated")
            return result
        except VmControlError as e:
            logger.error(f"Failed to perform action '{action}' on VM {vmid}: {e}")
            raise

    def start_vm(self, node, vmid):
        return self.vm_power(node, vmid, 'start')

    def stop_vm(self, node, vmid):
        return self.vm_power(node, vmid, 'stop')

    def reset_vm(self, node, vmid):
        return self.vm_power(node, vmid, 'reset')

    def shutdown_vm(self, node, vmid):
        return self.vm_power(node, vmid, 'shutdown')

    def delete_vm(self, node, vmid, purge=False):
        validate_node(node)
        vmid = validate_vmid(vmid)
        params = {'purge': 1} if purge else None
        try:
            result = self._delete(_path('nodes', node, 'qemu', vmid), params)
            logger.info(f"VM {vmid} deletion initiated on node {node}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to delete VM {vmid}: {e}")
            raise

    def resize_vm_disk(self, node, vmid, disk, size):
        """
        Grow a VM disk.

        :param disk: Disk key, e.g. 'scsi0'
        :param size: Absolute ('32G') or relative ('+10G') size
        """
        require(disk, 'Disk')
        require(size, 'Size')
        validate_node(node)
        vmid = validate_vmid(vmid)
        try:
            return self._put(_path('nodes', node, 'qemu', vmid, 'resize'), {'disk': disk, 'size': size})
        except VmControlError as e:
            logger.error(f"Failed to resize disk {disk} of VM {vmid}: {e}")
            raise

    def move_vm_disk(self, node, vmid, disk, storage, format=None, delete=False):
        require(disk, 'Disk')
        validate_storage(storage)
        validate_node(node)
        vmid = validate_vmid(vmid)
        params = {'disk': disk, 'storage': storage, 'delete': '1' if delete else '0'}
        if format:
            params['format'] = format
        try:
            return self._call('POST', _path('nodes', node, 'qemu', vmid, 'move_disk'), data=params)
        except VmControlError as e:
            logger.error(f"Failed to move disk {disk} of VM {vmid}: {e}")
            raise

    def update_vm_memory(self, node, vmid, memory, balloon=None):
        params = {'memory': str(validate_positive_int(memory, 'memory'))}
        if balloon is not None:
            params['balloon'] = str(validate_positive_int(balloon, 'balloon'))
        return self._update_config(node, vmid, params, 'memory')

    def update_vm_network(self, node, vmid, net_id, model, mac_address, bridge='vmbr0', firewall=False):
        """
        Replace one network interface of a VM.

        :param net_id: Interface index, 0 for net0
        :param model: NIC model (virtio, e1000, rtl8139, vmxnet3)
        :param mac_address: MAC address for the NIC
        :param bridge: Bridge to attach to
        :param firewall: Enable the Proxmox firewall on the NIC
        """
        config = f"{model}={mac_address},bridge={bridge}" + (",firewall=1" if firewall else "")
        validate_net_config(config)
        index = as_int(net_id)
        if index is None or index < 0:
            raise ArgumentError(f"Invalid network interface index: {net_id}")
        return self._update_config(node, vmid, {f"net{index}": config}, f"net{index}")

    def update_vm_cpu(self, node, vmid, cpu_type, cores, sockets=1, vcpus=None):
        params = {
            'cpu': require(cpu_type, 'CPU type'),
            'cores': str(validate_positive_int(cores, 'cores')),
            'sockets': str(validate_positive_int(sockets, 'sockets')),
        }
        if vcpus:
            params['vcpus'] = str(validate_positive_int(vcpus, 'vcpus'))
        return self._update_config(node, vmid, params, 'CPU')

    def update_vm_boot_order(self, node, vmid, boot_order, boot_disk=None):
        params = {'boot': require(boot_order, 'Boot order')}
        if boot_disk:
            params['bootdisk'] = boot_disk
        return self._update_config(node, vmid, params, 'boot order')

    def update_vm_display(self, node, vmid, vga_type, port=None, listen='0.0.0.0'):
        params = {'vga': require(vga_type, 'Display type')}
        if port:
            params['port'] = str(validate_positive_int(port, 'port'))
        if listen:
            params['listen'] = listen
        return self._update_config(node, vmid, params, 'display')

    def get_firewall_options(self, node, vmid) -> Dict:
        validate_node(node)
        vmid = validate_vmid(vmid)
        return expect_dict(self._get(_path('nodes', node, 'qemu', vmid, 'firewall', 'options')))

    def get_firewall_rules(self, node, vmid) -> List[Dict]:
        validate_node(node)
        vmid = validate_vmid(vmid)
        return expect_list(self._get(_path('nodes', node, 'qemu', vmid, 'firewall', 'rules')))

    def get_vnc_ticket(self, node, vmid) -> VncTicket:
        validate_node(node)
        vmid = validate_vmid(vmid)
        return self._post(_path('nodes', node, 'qemu', vmid, 'vncproxy'), model=VncTicket)

    def get_vnc_url(self, node, vmid) -> str:
        """Browser URL of the noVNC console for a VM."""
        status = self.get_vm_status(node, vmid)
        vm_name = status.get('name')
        if not vm_name:
            raise DecodeError(status, message=f"VM {vmid} on node {node} has no name in its status")
        return f"{self.url}/?console=kvm&novnc=1&vmid={vmid}&vmname={vm_name}&node={node}&resize=off&cmd="

    def send_key(self, node, vmid, key):
        require(key, 'Key')
        validate_node(node)
        vmid = validate_vmid(vmid)
        return self._call('PUT', _path('nodes', node, 'qemu', vmid, 'sendkey'), data={'key': key})

    # VM creation
    def create_vm(self, node, vmid, storage, options: Optional[VmCreateOptions] = None) -> Result:
        """
        Create a QEMU VM.

        Remote failures are reported in the returned Result instead of raised, so batch
        callers can carry on. Invalid options raise ArgumentError before any request, and
        a disposed client raises ObjectDisposedError; ``create_multiple_vms`` turns either
        of those into a failed Result for the affected instance.

        :param node: Node name
        :param vmid: VM ID for the new machine
        :param storage: Storage for the boot disk
        :param options: VmCreateOptions; unset fields keep the server defaults
        :return: Result whose data is the creation task UPID
        """
        self._ensure_not_disposed()
        validate_node(node)
        payload = build_vm_payload(vmid, storage, options)
        name = payload.get('name')
        try:
            upid = self._post(_path('nodes', node, 'qemu'), json=payload)
        except (RequestFailed, DecodeError, AuthenticationError) as e:
            logger.error(f"Failed to create VM {vmid} on node {node}: {e}")
            return Result.fail(f"Failed to create VM {vmid}: {e}", vmid=payload['vmid'], name=name)
        logger.info(f"VM {vmid} creation initiated on node {node}, UPID: {upid}")
        return Result.ok(upid, vmid=payload['vmid'], name=name)

    def create_multiple_vms(self, node, storage, count, template: Optional[VmCreateOptions] = None,
                            name_pattern=None, id_allocator=None) -> List[Result]:
        """
        Create several VMs from one template, all dispatched at once.

        Each instance gets its own VM ID from ``id_allocator`` (random by default) and
        its own name from ``name_pattern`` (``{index}``/``{vmid}`` placeholders) or a
        random one. One failure does not affect the others.

        :param node: Node name
        :param storage: Storage for the boot disks
        :param count: Number of VMs
        :param template: Settings shared by all instances
        :param name_pattern: Optional name format string
        :param id_allocator: IdAllocator; RandomIdAllocator when omitted
        :return: One Result per instance, in instance order
        """
        self._ensure_not_disposed()
        validate_node(node)
        validate_storage(storage)
        count = validate_positive_int(count, 'count')
        cap = self.config.max_batch_size
        if cap is not None and count > cap:
            raise ArgumentError(f"Cannot create {count} VMs at once: limit is {cap}")
        template = template or VmCreateOptions()
        template.validate_values()

        allocator = id_allocator or RandomIdAllocator()
        vmids = allocator.allocate(count)
        names = generate_names(count, name_pattern, vmids)
        instances = [template.model_copy(update={'name': name}) for name in names]

        workers = min(count, self.config.batch_workers)
        logger.info(f"Creating {count} VMs on node {node} with {workers} workers")
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self.create_vm, node, vmid, storage, options)
                for vmid, options in zip(vmids, instances)
            ]
            results = []
            for vmid, name, future in zip(vmids, names, futures):
                try:
                    results.append(future.result())
                except VmControlError as e:
                    results.append(Result.fail(str(e), vmid=vmid, name=name))
        failed = sum(1 for r in results if not r.success)
        if failed:
            logger.warning(f"{failed} of {count} VM creations failed on node {node}")
        else:
            logger.info(f"All {count} VMs created on node {node}")
        return results

    # Capabilities
    def get_cpu_types(self, node='localhost') -> List[str]:
        data = self._get(_path('nodes', node, 'capabilities', 'qemu', 'cpu'))
        names = [as_str(cpu.get('name')) for cpu in (data or []) if isinstance(cpu, dict) and cpu.get('name')]
        return names or list(DEFAULT_CPU_TYPES)

    def get_os_types(self) -> List[str]:
        return list(OS_TYPES)

    def get_os_versions(self, os_type) -> List[str]:
        return list(OS_VERSIONS.get(str(os_type).lower(), ['Other']))

    # Storage
    def get_storage(self) -> List[Dict]:
        try:
            storages = expect_list(self._get(_path('storage')))
            logger.info(f"Retrieved {len(storages)} storage definitions")
            return storages
        except VmControlError as e:
            logger.error(f"Failed to list storage: {e}")
            raise

    def get_node_storage(self, node) -> List[Dict]:
        validate_node(node)
        try:
            return expect_list(self._get(_path('nodes', node, 'storage')))
        except VmControlError as e:
            logger.error(f"Failed to list storage on node {node}: {e}")
            raise

    def get_storage_content(self, node, storage, content_type=None) -> List[Dict]:
        """
        List storage content.

        :param node: Node name
        :param storage: Storage ID
        :param content_type: Optional content type filter (e.g., 'iso', 'images')
        :return: List of content items
        """
        validate_node(node)
        validate_storage(storage)
        params = {'content': content_type} if content_type else None
        try:
            content = expect_list(self._get(_path('nodes', node, 'storage', storage, 'content'), params))
            logger.info(f"Retrieved {len(content)} content items from storage {storage}")
            return content
        except VmControlError as e:
            logger.error(f"Failed to list content for storage {storage}: {e}")
            raise

    # Network
    def get_network_interfaces(self, node) -> List[NetworkInterface]:
        validate_node(node)
        return self._get(_path('nodes', node, 'network'), model=List[NetworkInterface])

    def get_networks(self) -> List[NetworkInterface]:
        """Network interfaces of all nodes."""
        networks = []
        for node in self.get_nodes():
            node_name = as_str(node.get('node'))
            if node_name:
                networks.extend(self.get_network_interfaces(node_name))
        return networks

    def get_network_interface(self, node, iface) -> NetworkInterface:
        validate_node(node)
        require(iface, 'Interface')
        return self._get(_path('nodes', node, 'network', iface), model=NetworkInterface)

    def create_network_interface(self, node, iface, iface_type, settings: Optional[NetworkInterface] = None):
        validate_node(node)
        require(iface, 'Interface')
        validate_choice(iface_type, NETWORK_TYPES, 'interface type')
        params = settings.to_params() if settings else {}
        params.update({'iface': iface, 'type': iface_type})
        try:
            result = self._call('POST', _path('nodes', node, 'network'), data=params)
            logger.info(f"Created network interface {iface} on node {node}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to create network interface {iface} on node {node}: {e}")
            raise

    def update_network_interface(self, node, iface, settings: NetworkInterface):
        """
        Update a node network interface. Only fields set on ``settings`` are sent.

        :param node: Node name
        :param iface: Interface name, e.g. 'vmbr1'
        :param settings: New values
        :return: True on success
        """
        validate_node(node)
        require(iface, 'Interface')
        params = settings.to_params()
        if 'type' not in params:
            raise ArgumentError("Network interface type is required")
        try:
            result = self._put(_path('nodes', node, 'network', iface), params)
            logger.info(f"Updated network interface {iface} on node {node}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to update network interface {iface} on node {node}: {e}")
            raise

    def delete_network_interface(self, node, iface):
        validate_node(node)
        require(iface, 'Interface')
        try:
            return self._delete(_path('nodes', node, 'network', iface))
        except VmControlError as e:
            logger.error(f"Failed to delete network interface {iface} on node {node}: {e}")
            raise

    def apply_network_changes(self, node):
        """Reload the node network configuration with pending changes."""
        validate_node(node)
        return self._put(_path('nodes', node, 'network'))

    # Users
    def get_users(self) -> List[str]:
        users = expect_list(self._get(_path('access', 'users')))
        return [as_str(user['userid']) for user in users if isinstance(user, dict) and user.get('userid')]

    def get_user_config(self, userid) -> Dict:
        validate_userid(userid)
        data = expect_dict(self._get(_path('access', 'users', userid)))
        config = {}
        for key, value in data.items():
            if key == 'enable':
                config[key] = as_bool(value, default=False)
            elif isinstance(value, (dict, list)):
                config[key] = value
            else:
                config[key] = as_str(value, default='')
        return config

    def create_user(self, userid, config: Optional[UserConfig] = None):
        validate_userid(userid)
        params = {'userid': userid}
        if config:
            params.update(config.to_params())
        try:
            result = self._call('POST', _path('access', 'users'), data=params)
            logger.info(f"Created user {userid}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to create user {userid}: {e}")
            raise

    def update_user(self, userid, config: UserConfig):
        validate_userid(userid)
        try:
            result = self._put(_path('access', 'users', userid), config.to_params())
            logger.info(f"Updated user {userid}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to update user {userid}: {e}")
            raise

    def delete_user(self, userid):
        validate_userid(userid)
        try:
            result = self._delete(_path('access', 'users', userid))
            logger.info(f"Deleted user {userid}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to delete user {userid}: {e}")
            raise

    def add_user_to_group(self, userid, groupid):
        """
        Add a user to a group by rewriting the user's group list.

        :return: True on success
        """
        validate_userid(userid)
        require(groupid, 'Group ID')
        data = expect_dict(self._get(_path('access', 'users', userid)))
        groups = data.get('groups') or []
        if isinstance(groups, str):
            groups = [g for g in groups.split(',') if g]
        if groupid in groups:
            return True
        return self._put(_path('access', 'users', userid), {'groups': ','.join(list(groups) + [groupid])})

    # Groups
    def get_groups(self) -> List[Dict]:
        return expect_list(self._get(_path('access', 'groups')))

    def get_group(self, groupid) -> Dict:
        require(groupid, 'Group ID')
        return expect_dict(self._get(_path('access', 'groups', groupid)))

    def create_group(self, groupid, comment=None):
        require(groupid, 'Group ID')
        params = {'groupid': groupid}
        if comment:
            params['comment'] = comment
        try:
            result = self._call('POST', _path('access', 'groups'), data=params)
            logger.info(f"Created group {groupid}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to create group {groupid}: {e}")
            raise

    def create_group_with_members(self, groupid, members, comment=None) -> List[str]:
        """
        Create a group, then add each member one by one.

        Not atomic: the group stays even when some members cannot be added.

        :return: User IDs that could not be added
        """
        self.create_group(groupid, comment)
        failed = []
        for userid in members:
            try:
                self.add_user_to_group(userid, groupid)
            except VmControlError as e:
                logger.warning(f"Failed to add user {userid} to group {groupid}: {e}")
                failed.append(userid)
        return failed

    def update_group(self, groupid, comment=None, members=None):
        """
        Update a group's comment and/or member list.

        :param members: User IDs, list or comma-separated string
        """
        require(groupid, 'Group ID')
        params = {}
        if comment is not None:
            params['comment'] = comment
        if members is not None:
            params['users'] = members if isinstance(members, str) else ','.join(members)
        try:
            result = self._put(_path('access', 'groups', groupid), params)
            logger.info(f"Updated group {groupid}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to update group {groupid}: {e}")
            raise

    def delete_group(self, groupid):
        require(groupid, 'Group ID')
        try:
            result = self._delete(_path('access', 'groups', groupid))
            logger.info(f"Deleted group {groupid}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to delete group {groupid}: {e}")
            raise

    # Pools
    def get_pools(self) -> List[Dict]:
        return expect_list(self._get(_path('pools')))

    def get_pool(self, poolid) -> Dict:
        require(poolid, 'Pool ID')
        return expect_dict(self._get(_path('pools', poolid)))

    def create_pool(self, poolid, comment=None):
        require(poolid, 'Pool ID')
        params = {'poolid': poolid}
        if comment:
            params['comment'] = comment
        try:
            result = self._call('POST', _path('pools'), data=params)
            logger.info(f"Created pool {poolid}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to create pool {poolid}: {e}")
            raise

    def update_pool(self, poolid, comment=None, vms=None, storage=None, delete=False):
        """
        Update a pool; ``vms``/``storage`` members are added, or removed with ``delete``.
        """
        require(poolid, 'Pool ID')
        params = {}
        if comment is not None:
            params['comment'] = comment
        if vms:
            params['vms'] = ','.join(str(validate_vmid(v)) for v in vms)
        if storage:
            params['storage'] = ','.join(storage)
        if delete:
            params['delete'] = '1'
        return self._put(_path('pools', poolid), params)

    def delete_pool(self, poolid):
        require(poolid, 'Pool ID')
        try:
            result = self._delete(_path('pools', poolid))
            logger.info(f"Deleted pool {poolid}")
            return result
        except VmControlError as e:
            logger.error(f"Failed to delete pool {poolid}: {e}")
            raise


class VM:
    """
    Wrapper class for VM operations.
    """
    def __init__(self, client: ProxmoxClient):
        self.client = client

    def list(self, node=None):
        if node:
            vms = self.client.get_vms_for_node(node)
            for vm in vms:
                vm['node'] = node
            return vms
        return self.client.get_all_vms()

    def status(self, node, vmid):
        return self.client.get_vm_status(node, vmid)

    def config(self, node, vmid):
        return self.client.get_vm_config(node, vmid)

    def update(self, node, vmid, changes):
        return self.client.update_vm_config(node, vmid, changes)

    def start(self, node, vmid):
        return self.client.start_vm(node, vmid)

    def stop(self, node, vmid):
        return self.client.stop_vm(node, vmid)

    def reset(self, node, vmid):
        return self.client.reset_vm(node, vmid)

    def shutdown(self, node, vmid):
        return self.client.shutdown_vm(node, vmid)

    def create(self, node, vmid, storage, options=None):
        return self.client.create_vm(node, vmid, storage, options)

    def create_many(self, node, storage, count, template=None, name_pattern=None, id_allocator=None):
        return self.client.create_multiple_vms(node, storage, count, template, name_pattern, id_allocator)

    def delete(self, node, vmid, purge=False):
        return self.client.delete_vm(node, vmid, purge)


class Node:
    def __init__(self, client: ProxmoxClient):
        self.client = client

    def list(self):
        return self.client.get_nodes()

    def status(self, node):
        return self.client.get_node_status(node)

    def next_vmid(self):
        return self.client.get_next_vmid()


class Storage:
    def __init__(self, client: ProxmoxClient):
        self.client = client

    def list(self, node=None):
        if node:
            return self.client.get_node_storage(node)
        return self.client.get_storage()

    def content(self, node, storage, content_type=None):
        return self.client.get_storage_content(node, storage, content_type)


class Network:
    def __init__(self, client: ProxmoxClient):
        self.client = client

    def list(self, node=None):
        if node:
            return self.client.get_network_interfaces(node)
        return self.client.get_networks()

    def get(self, node, iface):
        return self.client.get_network_interface(node, iface)

    def create(self, node, iface, iface_type, settings=None):
        return self.client.create_network_interface(node, iface, iface_type, settings)

    def update(self, node, iface, settings):
        return self.client.update_network_interface(node, iface, settings)

    def delete(self, node, iface):
        return self.client.delete_network_interface(node, iface)

    def apply(self, node):
        return self.client.apply_network_changes(node)


class Access:
    """
    Wrapper class for users and groups.
    """
    def __init__(self, client: ProxmoxClient):
        self.client = client

    def user_list(self):
        return self.client.get_users()

    def user_get(self, userid):
        return self.client.get_user_config(userid)

    def user_create(self, userid, config=None):
        return self.client.create_user(userid, config)

    def user_update(self, userid, config):
        return self.client.update_user(userid, config)

    def user_delete(self, userid):
        return self.client.delete_user(userid)

    def group_list(self):
        return self.client.get_groups()

    def group_get(self, groupid):
        return self.client.get_group(groupid)

    def group_create(self, groupid, comment=None, members=None):
        if members:
            return self.client.create_group_with_members(groupid, members, comment)
        return self.client.create_group(groupid, comment)

    def group_update(self, groupid, comment=None, members=None):
        return self.client.update_group(groupid, comment, members)

    def group_delete(self, groupid):
        return self.client.delete_group(groupid)

    def add_to_group(self, userid, groupid):
        return self.client.add_user_to_group(userid, groupid)


class Pool:
    def __init__(self, client: ProxmoxClient):
        self.client = client

    def list(self):
        return self.client.get_pools()

    def get(self, poolid):
        return self.client.get_pool(poolid)

    def create(self, poolid, comment=None):
        return self.client.create_pool(poolid, comment)

    def update(self, poolid, comment=None, vms=None, storage=None, delete=False):
        return self.client.update_pool(poolid, comment, vms, storage, delete)

    def delete(self, poolid):
        return self.client.delete_pool(poolid)
