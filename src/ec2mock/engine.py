"""Mock EC2 provisioning engine.

One ``MockEC2`` instance owns its store, recorder and allocator; tests build
their own engine and never share it:

    engine = MockEC2(EngineConfig(seed=42))
    engine.append_vpc(Vpc(vpc_id="vpc-1", cidr_block="10.0.0.0/16"))
    subnet = engine.create_subnet(VpcId="vpc-1", CidrBlock="10.0.0.0/24").subnet
    eni = engine.create_network_interface(SubnetId=subnet.subnet_id).network_interface

Handlers accept a request model or keyword arguments in the API's field
names and return response models. Returned resources are copies; mutating
them never changes engine state.
"""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from pydantic import ValidationError

from .allocator import UniqueAllocator
from .config import EngineConfig
from .errors import (
    DependencyViolationError,
    InvalidParameterError,
    MockEC2Error,
    not_found,
)
from .filters import (
    ADDRESS_FILTERS,
    INSTANCE_FILTERS,
    NETWORK_INTERFACE_FILTERS,
    SECURITY_GROUP_FILTERS,
    SUBNET_FILTERS,
    VPC_FILTERS,
)
from .models import (
    CALL_MODELS,
    Address,
    AllocateAddressRequest,
    AllocateAddressResponse,
    AssignedPrivateIpAddress,
    AssignPrivateIpAddressesRequest,
    AssignPrivateIpAddressesResponse,
    AssociateAddressRequest,
    AssociateAddressResponse,
    AuthorizeSecurityGroupIngressRequest,
    AuthorizeSecurityGroupIngressResponse,
    CreateNetworkInterfaceRequest,
    CreateNetworkInterfaceResponse,
    CreateSecurityGroupRequest,
    CreateSecurityGroupResponse,
    CreateSubnetRequest,
    CreateSubnetResponse,
    CreateTagsRequest,
    CreateTagsResponse,
    CreateVpcRequest,
    CreateVpcResponse,
    DeleteNetworkInterfaceRequest,
    DeleteNetworkInterfaceResponse,
    DeleteSecurityGroupRequest,
    DeleteSecurityGroupResponse,
    DeleteSubnetRequest,
    DeleteSubnetResponse,
    DescribeAddressesRequest,
    DescribeAddressesResponse,
    DescribeInstanceAttributeRequest,
    DescribeInstanceAttributeResponse,
    DescribeInstancesRequest,
    DescribeInstancesResponse,
    DescribeNetworkInterfacesRequest,
    DescribeNetworkInterfacesResponse,
    DescribeSecurityGroupsRequest,
    DescribeSecurityGroupsResponse,
    DescribeSubnetsRequest,
    DescribeSubnetsResponse,
    DescribeVpcsRequest,
    DescribeVpcsResponse,
    DisassociateAddressRequest,
    DisassociateAddressResponse,
    EC2Model,
    GroupIdentifier,
    Instance,
    IpPermission,
    NetworkInterface,
    NetworkInterfaceAssociation,
    NetworkInterfacePrivateIpAddress,
    ReleaseAddressRequest,
    ReleaseAddressResponse,
    Reservation,
    RevokeSecurityGroupIngressRequest,
    RevokeSecurityGroupIngressResponse,
    SecurityGroup,
    Subnet,
    SubnetCidrBlockState,
    SubnetIpv6CidrBlockAssociation,
    Tag,
    UnassignPrivateIpAddressesRequest,
    UnassignPrivateIpAddressesResponse,
    Vpc,
    get_call_models,
)
from .netutil import (
    address_in_block,
    parse_cidr,
    pick_random_host,
    private_dns_name,
    random_id,
    random_mac,
)
from .recorder import Recorder
from .store import (
    NS_ALLOCATION_ID,
    NS_ASSOCIATION_ID,
    NS_GROUP_ID,
    NS_INTERFACE_ID,
    NS_MAC,
    NS_PUBLIC_IP,
    NS_SUBNET_ASSOCIATION_ID,
    NS_SUBNET_ID,
    NS_VPC_ID,
    ResourceStore,
    private_ip_namespace,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=EC2Model)

# Attribute supported by DescribeInstanceAttribute
GROUP_SET_ATTRIBUTE = "groupSet"

SECONDARY_BLOCK_STATE = "associated"
EXHAUSTED_SUBNET_CODE = "InsufficientFreeAddressesInSubnet"
EXHAUSTED_ADDRESS_CODE = "AddressLimitExceeded"

# Not-found kind by id prefix, for ids that resolve to nothing
ID_PREFIX_KINDS: dict[str, str] = {
    "vpc-": "vpc",
    "subnet-": "subnet",
    "eni-": "network-interface",
    "sg-": "security-group",
    "eipalloc-": "allocation",
    "i-": "instance",
}


def call_method_name(call_name: str) -> str:
    """Python method name of an API call (``CreateSubnet`` -> ``create_subnet``)."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", call_name).lower()


def _copy(model: M) -> M:
    return model.model_copy(deep=True)


class MockEC2:
    """Stateful in-memory double of the EC2 networking API.

    Every handler goes through the recorder before its default logic: an
    injected error wins, the call is always logged, a canned response comes
    next, and only then does the engine touch the store.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        """Initialize the engine with its seed state.

        Args:
            config: Engine configuration; defaults apply if None.
        """
        self._config = config or EngineConfig()
        self._rng = random.Random(self._config.seed)
        self._store = ResourceStore()
        self._recorder = Recorder()
        self._allocator = UniqueAllocator(
            self._store, max_attempts=self._config.max_allocation_attempts
        )
        self._default_security_group_id = ""
        self._default_instance_id = self._config.default_instance_id
        self._seed_defaults()

    # -------------------------------------------------------------------------
    # Engine surface
    # -------------------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def recorder(self) -> Recorder:
        """Call log and override table."""
        return self._recorder

    @property
    def store(self) -> ResourceStore:
        """Underlying state, for assertions."""
        return self._store

    @property
    def default_security_group_id(self) -> str:
        """Id of the seeded group attached to every instance."""
        return self._default_security_group_id

    @property
    def default_instance(self) -> Instance:
        instance = self._store.get_instance(self._default_instance_id)
        if instance is None:
            raise RuntimeError("Default instance is missing from the store")
        return _copy(instance)

    def queue_error(self, call_name: str, error: BaseException) -> None:
        self._recorder.queue_error(call_name, error)

    def queue_response(
        self,
        call_name: str,
        response: EC2Model | None,
        *,
        error: BaseException | None = None,
        when: Callable[[Any], bool] | None = None,
    ) -> None:
        self._recorder.queue_response(call_name, response, error=error, when=when)

    def get_call_log(self) -> list[str]:
        return self._recorder.get_call_log()

    def reset(self) -> None:
        """Clear recorder and store, then re-seed the default state."""
        self._recorder.reset()
        self._store.clear()
        self._rng.seed(self._config.seed)
        self._seed_defaults()

    def call(self, call_name: str, request: Any = None, **params: Any) -> EC2Model | None:
        """Dispatch by API call name (e.g., ``engine.call("CreateSubnet", VpcId=...)``).

        Raises:
            KeyError: If the call is not supported.
        """
        get_call_models(call_name)
        handler = getattr(self, call_method_name(call_name))
        return handler(request, **params)

    # -------------------------------------------------------------------------
    # Test-only injection
    # -------------------------------------------------------------------------

    def append_instance(self, instance: Instance | dict[str, Any]) -> Instance:
        """Inject an instance, attaching the default security group to it.

        Bypasses the recorder; nothing is logged.
        """
        stored = _coerce_model(Instance, instance)
        default_groups = self.default_instance.security_groups
        existing = {g.group_id for g in stored.security_groups}
        stored.security_groups.extend(g for g in default_groups if g.group_id not in existing)
        self._store.put_instance(stored)
        return _copy(stored)

    def append_vpc(self, vpc: Vpc | dict[str, Any]) -> Vpc:
        """Inject a VPC record. Bypasses the recorder; nothing is logged."""
        stored = _coerce_model(Vpc, vpc)
        if stored.owner_id is None:
            stored.owner_id = self._config.owner_id
        self._store.put_vpc(stored)
        return _copy(stored)

    # -------------------------------------------------------------------------
    # VPCs
    # -------------------------------------------------------------------------

    def create_vpc(
        self, request: CreateVpcRequest | None = None, **params: Any
    ) -> CreateVpcResponse:
        """Create a VPC with a generated ``vpc-`` id."""
        return self._invoke("CreateVpc", request, params, self._create_vpc)

    def describe_vpcs(
        self, request: DescribeVpcsRequest | None = None, **params: Any
    ) -> DescribeVpcsResponse:
        return self._invoke("DescribeVpcs", request, params, self._describe_vpcs)

    def _create_vpc(self, req: CreateVpcRequest) -> CreateVpcResponse:
        self._parse_block(req.cidr_block, "CreateVpc", version=4)
        with self._store.lock:
            vpc_id = self._new_id(NS_VPC_ID, "vpc", "CreateVpc")
            vpc = self._store.put_vpc(
                Vpc(vpc_id=vpc_id, cidr_block=req.cidr_block, owner_id=self._config.owner_id)
            )
        logger.debug("VPC created", extra={"vpc_id": vpc_id, "cidr_block": req.cidr_block})
        return CreateVpcResponse(vpc=_copy(vpc))

    def _describe_vpcs(self, req: DescribeVpcsRequest) -> DescribeVpcsResponse:
        with self._store.lock:
            resolved = _resolve_ids(req.vpc_ids, self._store.get_vpc)
            vpcs = VPC_FILTERS.apply(self._store.list_vpcs(), req.filters, resolved)
            return DescribeVpcsResponse(vpcs=[_copy(v) for v in vpcs])

    # -------------------------------------------------------------------------
    # Subnets
    # -------------------------------------------------------------------------

    def create_subnet(
        self, request: CreateSubnetRequest | None = None, **params: Any
    ) -> CreateSubnetResponse:
        """Create a subnet under an existing VPC.

        Fails with InvalidParameterValue for a malformed block and
        InvalidVpcID.NotFound for an unknown parent. A requested
        ``Ipv6CidrBlock`` becomes an association in the "associated" state.
        """
        return self._invoke("CreateSubnet", request, params, self._create_subnet)

    def describe_subnets(
        self, request: DescribeSubnetsRequest | None = None, **params: Any
    ) -> DescribeSubnetsResponse:
        return self._invoke("DescribeSubnets", request, params, self._describe_subnets)

    def delete_subnet(
        self, request: DeleteSubnetRequest | None = None, **params: Any
    ) -> DeleteSubnetResponse:
        return self._invoke("DeleteSubnet", request, params, self._delete_subnet)

    def _create_subnet(self, req: CreateSubnetRequest) -> CreateSubnetResponse:
        self._parse_block(req.cidr_block, "CreateSubnet", version=4)
        if req.ipv6_cidr_block is not None:
            self._parse_block(req.ipv6_cidr_block, "CreateSubnet", version=6)

        with self._store.lock:
            if self._store.get_vpc(req.vpc_id) is None:
                raise not_found("vpc", req.vpc_id, "CreateSubnet")

            subnet_id = self._new_id(NS_SUBNET_ID, "subnet", "CreateSubnet")
            secondary: list[SubnetIpv6CidrBlockAssociation] = []
            if req.ipv6_cidr_block is not None:
                association_id = self._new_id(
                    NS_SUBNET_ASSOCIATION_ID, "subnet-cidr-assoc", "CreateSubnet"
                )
                secondary.append(
                    SubnetIpv6CidrBlockAssociation(
                        association_id=association_id,
                        ipv6_cidr_block=req.ipv6_cidr_block,
                        ipv6_cidr_block_state=SubnetCidrBlockState(state=SECONDARY_BLOCK_STATE),
                    )
                )

            subnet = self._store.put_subnet(
                Subnet(
                    subnet_id=subnet_id,
                    vpc_id=req.vpc_id,
                    cidr_block=req.cidr_block,
                    availability_zone=req.availability_zone or f"{self._config.region}a",
                    ipv6_cidr_block_association_set=secondary,
                )
            )

        logger.debug(
            "Subnet created",
            extra={"subnet_id": subnet_id, "vpc_id": req.vpc_id, "cidr_block": req.cidr_block},
        )
        return CreateSubnetResponse(subnet=_copy(subnet))

    def _describe_subnets(self, req: DescribeSubnetsRequest) -> DescribeSubnetsResponse:
        with self._store.lock:
            resolved = _resolve_ids(req.subnet_ids, self._store.get_subnet)
            subnets = SUBNET_FILTERS.apply(self._store.list_subnets(), req.filters, resolved)
            return DescribeSubnetsResponse(subnets=[_copy(s) for s in subnets])

    def _delete_subnet(self, req: DeleteSubnetRequest) -> DeleteSubnetResponse:
        with self._store.lock:
            if self._store.get_subnet(req.subnet_id) is None:
                raise not_found("subnet", req.subnet_id, "DeleteSubnet")
            if self._store.interfaces_in_subnet(req.subnet_id):
                raise DependencyViolationError(
                    f"The subnet '{req.subnet_id}' has dependencies and cannot be deleted.",
                    "DeleteSubnet",
                )
            self._store.delete_subnet(req.subnet_id)

        logger.debug("Subnet deleted", extra={"subnet_id": req.subnet_id})
        return DeleteSubnetResponse()

    # -------------------------------------------------------------------------
    # Network interfaces
    # -------------------------------------------------------------------------

    def create_network_interface(
        self, request: CreateNetworkInterfaceRequest | None = None, **params: Any
    ) -> CreateNetworkInterfaceResponse:
        """Create an interface in a subnet.

        The primary address, interface id and MAC address are all unique.
        The private DNS name is derived from the primary address and region.
        """
        return self._invoke(
            "CreateNetworkInterface", request, params, self._create_network_interface
        )

    def delete_network_interface(
        self, request: DeleteNetworkInterfaceRequest | None = None, **params: Any
    ) -> DeleteNetworkInterfaceResponse:
        return self._invoke(
            "DeleteNetworkInterface", request, params, self._delete_network_interface
        )

    def describe_network_interfaces(
        self, request: DescribeNetworkInterfacesRequest | None = None, **params: Any
    ) -> DescribeNetworkInterfacesResponse:
        return self._invoke(
            "DescribeNetworkInterfaces", request, params, self._describe_network_interfaces
        )

    def _create_network_interface(
        self, req: CreateNetworkInterfaceRequest
    ) -> CreateNetworkInterfaceResponse:
        operation = "CreateNetworkInterface"
        with self._store.lock:
            subnet = self._store.get_subnet(req.subnet_id)
            if subnet is None:
                raise not_found("subnet", req.subnet_id, operation)

            groups: list[GroupIdentifier] = []
            for group_id in req.groups:
                group = self._store.get_security_group(group_id)
                if group is None:
                    raise not_found("security-group", group_id, operation)
                groups.append(GroupIdentifier(group_id=group.group_id, group_name=group.group_name))

            namespace = private_ip_namespace(subnet.subnet_id)
            if req.private_ip_address is not None:
                primary = self._claim_explicit_address(subnet, req.private_ip_address, operation)
            else:
                primary = self._draw_private_address(subnet, operation)
            addresses = [primary]

            try:
                for _ in range(req.secondary_private_ip_address_count or 0):
                    addresses.append(self._draw_private_address(subnet, operation))
                interface_id = self._new_id(NS_INTERFACE_ID, "eni", operation)
                mac = self._allocator.allocate(
                    NS_MAC, lambda: random_mac(self._rng), operation_name=operation
                )
            except Exception:
                self._store.release(namespace, addresses)
                raise

            interface = self._store.put_interface(
                NetworkInterface(
                    network_interface_id=interface_id,
                    subnet_id=subnet.subnet_id,
                    vpc_id=subnet.vpc_id,
                    availability_zone=subnet.availability_zone,
                    description=req.description,
                    mac_address=mac,
                    owner_id=self._config.owner_id,
                    private_ip_address=primary,
                    private_dns_name=self._dns_name(primary),
                    private_ip_addresses=[
                        self._private_address_entry(address, primary=(address == primary))
                        for address in addresses
                    ],
                    groups=groups,
                )
            )

        logger.debug(
            "Network interface created",
            extra={
                "network_interface_id": interface_id,
                "subnet_id": subnet.subnet_id,
                "private_ip_address": primary,
            },
        )
        return CreateNetworkInterfaceResponse(network_interface=_copy(interface))

    def _delete_network_interface(
        self, req: DeleteNetworkInterfaceRequest
    ) -> DeleteNetworkInterfaceResponse:
        with self._store.lock:
            interface = self._store.delete_interface(req.network_interface_id)
            if interface is None:
                raise not_found(
                    "network-interface", req.network_interface_id, "DeleteNetworkInterface"
                )
            self._release_private_addresses(
                interface.subnet_id,
                [p.private_ip_address for p in interface.private_ip_addresses],
            )

        logger.debug(
            "Network interface deleted",
            extra={"network_interface_id": req.network_interface_id},
        )
        return DeleteNetworkInterfaceResponse()

    def _describe_network_interfaces(
        self, req: DescribeNetworkInterfacesRequest
    ) -> DescribeNetworkInterfacesResponse:
        with self._store.lock:
            resolved = _resolve_ids(req.network_interface_ids, self._store.get_interface)
            interfaces = NETWORK_INTERFACE_FILTERS.apply(
                self._store.list_interfaces(), req.filters, resolved
            )
            return DescribeNetworkInterfacesResponse(
                network_interfaces=[_copy(i) for i in interfaces]
            )

    # -------------------------------------------------------------------------
    # Private addresses
    # -------------------------------------------------------------------------

    def assign_private_ip_addresses(
        self, request: AssignPrivateIpAddressesRequest | None = None, **params: Any
    ) -> AssignPrivateIpAddressesResponse:
        """Attach secondary private addresses to an interface.

        With ``SecondaryPrivateIpAddressCount`` set, that many unique addresses
        are drawn from the subnet, pausing between collisions. Otherwise every
        address in ``PrivateIpAddresses`` is attached as given.
        """
        return self._invoke(
            "AssignPrivateIpAddresses", request, params, self._assign_private_ip_addresses
        )

    def unassign_private_ip_addresses(
        self, request: UnassignPrivateIpAddressesRequest | None = None, **params: Any
    ) -> UnassignPrivateIpAddressesResponse:
        return self._invoke(
            "UnassignPrivateIpAddresses", request, params, self._unassign_private_ip_addresses
        )

    def _assign_private_ip_addresses(
        self, req: AssignPrivateIpAddressesRequest
    ) -> AssignPrivateIpAddressesResponse:
        operation = "AssignPrivateIpAddresses"

        if req.secondary_private_ip_address_count is None:
            with self._store.lock:
                interface = self._require_interface(req.network_interface_id, operation)
                self._store.force_reserve(
                    private_ip_namespace(interface.subnet_id), req.private_ip_addresses
                )
                for address in req.private_ip_addresses:
                    interface.private_ip_addresses.append(self._private_address_entry(address))
            return self._assigned_response(interface, req.private_ip_addresses)

        with self._store.lock:
            interface = self._require_interface(req.network_interface_id, operation)
            subnet = self._store.get_subnet(interface.subnet_id)
            if subnet is None:
                raise not_found("subnet", interface.subnet_id, operation)

        # Each reservation is atomic; collision pauses happen outside the lock
        namespace = private_ip_namespace(subnet.subnet_id)
        drawn: list[str] = []
        try:
            for _ in range(req.secondary_private_ip_address_count):
                drawn.append(
                    self._draw_private_address(
                        subnet, operation, pause_seconds=self._config.retry_pause_seconds
                    )
                )
            with self._store.lock:
                interface = self._require_interface(req.network_interface_id, operation)
                for address in drawn:
                    interface.private_ip_addresses.append(self._private_address_entry(address))
        except Exception:
            self._store.release(namespace, drawn)
            raise

        logger.debug(
            "Private addresses assigned",
            extra={"network_interface_id": req.network_interface_id, "count": len(drawn)},
        )
        return self._assigned_response(interface, drawn)

    def _unassign_private_ip_addresses(
        self, req: UnassignPrivateIpAddressesRequest
    ) -> UnassignPrivateIpAddressesResponse:
        operation = "UnassignPrivateIpAddresses"
        with self._store.lock:
            interface = self._require_interface(req.network_interface_id, operation)
            secondary = {
                p.private_ip_address for p in interface.private_ip_addresses if not p.primary
            }
            for address in req.private_ip_addresses:
                if address not in secondary:
                    raise InvalidParameterError(
                        f"Some of the specified addresses are not assigned to interface "
                        f"'{req.network_interface_id}': {address}",
                        operation,
                    )

            removed = set(req.private_ip_addresses)
            interface.private_ip_addresses = [
                p
                for p in interface.private_ip_addresses
                if p.primary or p.private_ip_address not in removed
            ]
            self._release_private_addresses(interface.subnet_id, removed)

        return UnassignPrivateIpAddressesResponse()

    # -------------------------------------------------------------------------
    # Elastic IPs
    # -------------------------------------------------------------------------

    def allocate_address(
        self, request: AllocateAddressRequest | None = None, **params: Any
    ) -> AllocateAddressResponse:
        """Allocate an elastic IP with a public address never handed out before."""
        return self._invoke("AllocateAddress", request, params, self._allocate_address)

    def release_address(
        self, request: ReleaseAddressRequest | None = None, **params: Any
    ) -> ReleaseAddressResponse:
        return self._invoke("ReleaseAddress", request, params, self._release_address)

    def associate_address(
        self, request: AssociateAddressRequest | None = None, **params: Any
    ) -> AssociateAddressResponse:
        return self._invoke("AssociateAddress", request, params, self._associate_address)

    def disassociate_address(
        self, request: DisassociateAddressRequest | None = None, **params: Any
    ) -> DisassociateAddressResponse:
        return self._invoke("DisassociateAddress", request, params, self._disassociate_address)

    def describe_addresses(
        self, request: DescribeAddressesRequest | None = None, **params: Any
    ) -> DescribeAddressesResponse:
        return self._invoke("DescribeAddresses", request, params, self._describe_addresses)

    def _allocate_address(self, req: AllocateAddressRequest) -> AllocateAddressResponse:
        operation = "AllocateAddress"
        with self._store.lock:
            allocation_id = self._new_id(NS_ALLOCATION_ID, "eipalloc", operation)
            public_ip = self._allocator.allocate(
                NS_PUBLIC_IP,
                lambda: pick_random_host(self._config.public_address_block, self._rng),
                operation_name=operation,
                exhausted_code=EXHAUSTED_ADDRESS_CODE,
            )
            address = self._store.put_address(
                Address(allocation_id=allocation_id, public_ip=public_ip, domain=req.domain)
            )

        logger.debug(
            "Address allocated",
            extra={"allocation_id": allocation_id, "public_ip": public_ip},
        )
        return AllocateAddressResponse(
            allocation_id=address.allocation_id,
            public_ip=address.public_ip,
            domain=address.domain,
        )

    def _release_address(self, req: ReleaseAddressRequest) -> ReleaseAddressResponse:
        with self._store.lock:
            if self._store.get_address(req.allocation_id) is None:
                raise not_found("allocation", req.allocation_id, "ReleaseAddress")
            for entry in self._entries_associated_with(req.allocation_id):
                entry.association = None
            self._store.delete_address(req.allocation_id)

        logger.debug("Address released", extra={"allocation_id": req.allocation_id})
        return ReleaseAddressResponse()

    def _associate_address(self, req: AssociateAddressRequest) -> AssociateAddressResponse:
        operation = "AssociateAddress"
        with self._store.lock:
            interface = self._require_interface(req.network_interface_id, operation)
            address = self._store.get_address(req.allocation_id)
            if address is None:
                raise not_found("allocation", req.allocation_id, operation)
            if req.public_ip is not None and req.public_ip != address.public_ip:
                raise InvalidParameterError(
                    f"Public IP '{req.public_ip}' does not belong to allocation "
                    f"'{req.allocation_id}'",
                    operation,
                )

            target = req.private_ip_address or interface.private_ip_address
            entry = next(
                (p for p in interface.private_ip_addresses if p.private_ip_address == target),
                None,
            )
            if entry is None:
                raise InvalidParameterError(
                    f"Private IP '{target}' is not assigned to interface "
                    f"'{req.network_interface_id}'",
                    operation,
                )

            # Re-associating moves the allocation
            for previous in self._entries_associated_with(req.allocation_id):
                previous.association = None

            association_id = self._new_id(NS_ASSOCIATION_ID, "eipassoc", operation)
            entry.association = NetworkInterfaceAssociation(
                allocation_id=address.allocation_id,
                association_id=association_id,
                public_ip=address.public_ip,
                ip_owner_id=self._config.owner_id,
            )

        logger.debug(
            "Address associated",
            extra={
                "allocation_id": req.allocation_id,
                "network_interface_id": req.network_interface_id,
                "association_id": association_id,
            },
        )
        return AssociateAddressResponse(association_id=association_id)

    def _disassociate_address(
        self, req: DisassociateAddressRequest
    ) -> DisassociateAddressResponse:
        found = False
        with self._store.lock:
            for interface in self._store.list_interfaces():
                for entry in interface.private_ip_addresses:
                    association = entry.association
                    if association is not None and association.association_id == req.association_id:
                        entry.association = None
                        found = True
            if not found:
                raise not_found("association", req.association_id, "DisassociateAddress")

        logger.debug("Address disassociated", extra={"association_id": req.association_id})
        return DisassociateAddressResponse()

    def _describe_addresses(self, req: DescribeAddressesRequest) -> DescribeAddressesResponse:
        with self._store.lock:
            every = self._store.list_addresses()
            resolved: list[Address] | None = None
            if req.public_ips or req.allocation_ids:
                resolved = [
                    a
                    for a in every
                    if a.public_ip in req.public_ips or a.allocation_id in req.allocation_ids
                ]
            matched = ADDRESS_FILTERS.apply(every, req.filters, resolved)

            # allocation id -> (interface, private address, association)
            associations: dict[str, tuple[NetworkInterface, str, NetworkInterfaceAssociation]] = {}
            for interface in self._store.list_interfaces():
                for entry in interface.private_ip_addresses:
                    association = entry.association
                    if association is not None and association.allocation_id:
                        associations[association.allocation_id] = (
                            interface,
                            entry.private_ip_address,
                            association,
                        )

            addresses: list[Address] = []
            for address in matched:
                described = _copy(address)
                if address.allocation_id in associations:
                    interface, private_ip, association = associations[address.allocation_id]
                    described.association_id = association.association_id
                    described.network_interface_id = interface.network_interface_id
                    described.network_interface_owner_id = interface.owner_id
                    described.private_ip_address = private_ip
                addresses.append(described)

        return DescribeAddressesResponse(addresses=addresses)

    # -------------------------------------------------------------------------
    # Security groups
    # -------------------------------------------------------------------------

    def create_security_group(
        self, request: CreateSecurityGroupRequest | None = None, **params: Any
    ) -> CreateSecurityGroupResponse:
        return self._invoke("CreateSecurityGroup", request, params, self._create_security_group)

    def delete_security_group(
        self, request: DeleteSecurityGroupRequest | None = None, **params: Any
    ) -> DeleteSecurityGroupResponse:
        return self._invoke("DeleteSecurityGroup", request, params, self._delete_security_group)

    def describe_security_groups(
        self, request: DescribeSecurityGroupsRequest | None = None, **params: Any
    ) -> DescribeSecurityGroupsResponse:
        return self._invoke(
            "DescribeSecurityGroups", request, params, self._describe_security_groups
        )

    def authorize_security_group_ingress(
        self, request: AuthorizeSecurityGroupIngressRequest | None = None, **params: Any
    ) -> AuthorizeSecurityGroupIngressResponse:
        """Append ingress rules to a group; duplicates are not checked."""
        return self._invoke(
            "AuthorizeSecurityGroupIngress", request, params, self._authorize_ingress
        )

    def revoke_security_group_ingress(
        self, request: RevokeSecurityGroupIngressRequest | None = None, **params: Any
    ) -> RevokeSecurityGroupIngressResponse:
        """Remove one ingress rule per requested rule.

        By default the rule removed is the first one whose protocol, from-port
        or to-port differs from the request; if every rule matches, nothing is
        removed. With ``strict_ingress_revoke`` the first rule matching on all
        three fields is removed instead.
        """
        return self._invoke("RevokeSecurityGroupIngress", request, params, self._revoke_ingress)

    def _create_security_group(
        self, req: CreateSecurityGroupRequest
    ) -> CreateSecurityGroupResponse:
        operation = "CreateSecurityGroup"
        with self._store.lock:
            if req.vpc_id is not None and self._store.get_vpc(req.vpc_id) is None:
                raise not_found("vpc", req.vpc_id, operation)
            for group in self._store.list_security_groups():
                if group.group_name == req.group_name and group.vpc_id == req.vpc_id:
                    raise InvalidParameterError(
                        f"The security group '{req.group_name}' already exists",
                        operation,
                        code="InvalidGroup.Duplicate",
                    )

            group_id = self._new_id(NS_GROUP_ID, "sg", operation)
            self._store.put_security_group(
                SecurityGroup(
                    group_id=group_id,
                    group_name=req.group_name,
                    description=req.description,
                    vpc_id=req.vpc_id,
                    owner_id=self._config.owner_id,
                )
            )

        logger.debug("Security group created", extra={"group_id": group_id, "vpc_id": req.vpc_id})
        return CreateSecurityGroupResponse(group_id=group_id)

    def _delete_security_group(
        self, req: DeleteSecurityGroupRequest
    ) -> DeleteSecurityGroupResponse:
        with self._store.lock:
            if not self._store.delete_security_group(req.group_id):
                raise not_found("security-group", req.group_id, "DeleteSecurityGroup")

        logger.debug("Security group deleted", extra={"group_id": req.group_id})
        return DeleteSecurityGroupResponse()

    def _describe_security_groups(
        self, req: DescribeSecurityGroupsRequest
    ) -> DescribeSecurityGroupsResponse:
        with self._store.lock:
            resolved = _resolve_ids(req.group_ids, self._store.get_security_group)
            groups = SECURITY_GROUP_FILTERS.apply(
                self._store.list_security_groups(), req.filters, resolved
            )
            return DescribeSecurityGroupsResponse(security_groups=[_copy(g) for g in groups])

    def _authorize_ingress(
        self, req: AuthorizeSecurityGroupIngressRequest
    ) -> AuthorizeSecurityGroupIngressResponse:
        operation = "AuthorizeSecurityGroupIngress"
        rules = req.rules()
        with self._store.lock:
            group = self._require_group(req.group_id, operation)
            if not rules:
                raise InvalidParameterError(
                    "No ingress rule given", operation, code="MissingParameter"
                )
            group.ip_permissions.extend(_copy(rule) for rule in rules)

        logger.debug("Ingress authorized", extra={"group_id": req.group_id, "rules": len(rules)})
        return AuthorizeSecurityGroupIngressResponse()

    def _revoke_ingress(
        self, req: RevokeSecurityGroupIngressRequest
    ) -> RevokeSecurityGroupIngressResponse:
        operation = "RevokeSecurityGroupIngress"
        with self._store.lock:
            group = self._require_group(req.group_id, operation)
            for rule in req.rules():
                index = self._revoke_index(group.ip_permissions, rule)
                if index is not None:
                    del group.ip_permissions[index]
                    logger.debug(
                        "Ingress revoked",
                        extra={"group_id": req.group_id, "rule_index": index},
                    )

        return RevokeSecurityGroupIngressResponse()

    def _revoke_index(self, rules: list[IpPermission], requested: IpPermission) -> int | None:
        """Index of the rule a revoke removes, or None."""
        wanted = (requested.ip_protocol, requested.from_port, requested.to_port)
        for index, rule in enumerate(rules):
            same = (rule.ip_protocol, rule.from_port, rule.to_port) == wanted
            if self._config.strict_ingress_revoke:
                if same:
                    return index
            elif not same:
                return index
        return None

    # -------------------------------------------------------------------------
    # Instances
    # -------------------------------------------------------------------------

    def describe_instances(
        self, request: DescribeInstancesRequest | None = None, **params: Any
    ) -> DescribeInstancesResponse:
        """Describe instances; matches come back in a single reservation."""
        return self._invoke("DescribeInstances", request, params, self._describe_instances)

    def describe_instance_attribute(
        self, request: DescribeInstanceAttributeRequest | None = None, **params: Any
    ) -> DescribeInstanceAttributeResponse:
        """Describe an instance attribute. Only ``groupSet`` carries data."""
        return self._invoke(
            "DescribeInstanceAttribute", request, params, self._describe_instance_attribute
        )

    def _describe_instances(self, req: DescribeInstancesRequest) -> DescribeInstancesResponse:
        with self._store.lock:
            resolved = _resolve_ids(req.instance_ids, self._store.get_instance)
            instances = INSTANCE_FILTERS.apply(self._store.list_instances(), req.filters, resolved)
            reservation = Reservation(
                owner_id=self._config.owner_id,
                instances=[_copy(i) for i in instances],
            )
        return DescribeInstancesResponse(reservations=[reservation])

    def _describe_instance_attribute(
        self, req: DescribeInstanceAttributeRequest
    ) -> DescribeInstanceAttributeResponse:
        with self._store.lock:
            instance = self._store.get_instance(req.instance_id)
            if instance is None:
                raise not_found("instance", req.instance_id, "DescribeInstanceAttribute")
            response = DescribeInstanceAttributeResponse(instance_id=instance.instance_id)
            if req.attribute == GROUP_SET_ATTRIBUTE:
                response.groups = [_copy(g) for g in instance.security_groups]
        return response

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    def create_tags(
        self, request: CreateTagsRequest | None = None, **params: Any
    ) -> CreateTagsResponse:
        """Merge tags into resources by key. Every id must exist."""
        return self._invoke("CreateTags", request, params, self._create_tags)

    def _create_tags(self, req: CreateTagsRequest) -> CreateTagsResponse:
        with self._store.lock:
            targets = []
            for resource_id in req.resources:
                target = self._find_taggable(resource_id)
                if target is None:
                    raise not_found(_kind_for_id(resource_id), resource_id, "CreateTags")
                targets.append(target)

            for target in targets:
                if isinstance(target, NetworkInterface):
                    target.tag_set = _merge_tags(target.tag_set, req.tags)
                else:
                    target.tags = _merge_tags(target.tags, req.tags)

        logger.debug(
            "Tags created",
            extra={"resources": list(req.resources), "keys": [t.key for t in req.tags]},
        )
        return CreateTagsResponse()

    def _find_taggable(self, resource_id: str) -> Any:
        lookups: tuple[Callable[[str], Any], ...] = (
            self._store.get_vpc,
            self._store.get_subnet,
            self._store.get_interface,
            self._store.get_security_group,
            self._store.get_address,
            self._store.get_instance,
        )
        for lookup in lookups:
            found = lookup(resource_id)
            if found is not None:
                return found
        return None

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _invoke(
        self,
        call_name: str,
        request: Any,
        params: dict[str, Any],
        default: Callable[[Any], Any],
    ) -> Any:
        """Run the recorder preamble, then the default logic.

        Overrides see every call, including requests that do not fit the
        schema: those are recorded as their raw payload and only fail with
        ``ValidationError`` when the default logic would run.
        """
        request_type, _ = CALL_MODELS[call_name]
        invalid: ValidationError | None = None
        try:
            req = _coerce_request(request_type, request, params)
        except ValidationError as e:
            req, invalid = _raw_payload(request, params), e

        error = self._recorder.check_error(call_name)
        self._recorder.record(call_name, req)
        if error is not None:
            raise error

        canned = self._recorder.give_recorded_output(call_name, req)
        if canned is not None:
            return canned.resolve()

        if invalid is not None:
            raise invalid
        return default(req)

    def _seed_defaults(self) -> None:
        """Seed the default security group and the default instance."""
        group_id = random_id("sg", self._rng)
        self._store.put_security_group(
            SecurityGroup(
                group_id=group_id,
                group_name=self._config.default_security_group_name,
                description="default group",
                owner_id=self._config.owner_id,
            )
        )
        self._default_security_group_id = group_id
        self._store.put_instance(
            Instance(
                instance_id=self._config.default_instance_id,
                security_groups=[
                    GroupIdentifier(
                        group_id=group_id,
                        group_name=self._config.default_security_group_name,
                    )
                ],
            )
        )

    def _new_id(self, namespace: str, prefix: str, operation: str) -> str:
        return self._allocator.allocate(
            namespace, lambda: random_id(prefix, self._rng), operation_name=operation
        )

    def _parse_block(self, cidr: str, operation: str, *, version: int) -> None:
        try:
            network = parse_cidr(cidr)
        except ValueError as e:
            raise InvalidParameterError(
                f"Value ({cidr}) for parameter cidrBlock is invalid. {e}", operation
            ) from e
        if network.version != version:
            raise InvalidParameterError(
                f"Value ({cidr}) for parameter cidrBlock is invalid. Expected IPv{version}.",
                operation,
            )

    def _draw_private_address(
        self, subnet: Subnet, operation: str, *, pause_seconds: float = 0.0
    ) -> str:
        return self._allocator.allocate(
            private_ip_namespace(subnet.subnet_id),
            lambda: pick_random_host(subnet.cidr_block, self._rng),
            operation_name=operation,
            pause_seconds=pause_seconds,
            exhausted_code=EXHAUSTED_SUBNET_CODE,
        )

    def _claim_explicit_address(self, subnet: Subnet, address: str, operation: str) -> str:
        if not address_in_block(address, subnet.cidr_block):
            raise InvalidParameterError(
                f"Address '{address}' is not within subnet block {subnet.cidr_block}",
                operation,
            )
        if not self._store.reserve(private_ip_namespace(subnet.subnet_id), address):
            raise InvalidParameterError(
                f"Address '{address}' is in use", operation, code="InvalidIPAddress.InUse"
            )
        return address

    def _release_private_addresses(self, subnet_id: str, addresses: Iterable[str]) -> None:
        """Return addresses to the subnet pool unless another interface still holds them."""
        still_held = {
            p.private_ip_address
            for interface in self._store.interfaces_in_subnet(subnet_id)
            for p in interface.private_ip_addresses
        }
        self._store.release(
            private_ip_namespace(subnet_id), [a for a in addresses if a not in still_held]
        )

    def _private_address_entry(
        self, address: str, *, primary: bool = False
    ) -> NetworkInterfacePrivateIpAddress:
        return NetworkInterfacePrivateIpAddress(
            private_ip_address=address,
            private_dns_name=self._dns_name(address),
            primary=primary,
        )

    def _dns_name(self, address: str) -> str:
        return private_dns_name(address, self._config.region)

    def _require_interface(self, interface_id: str, operation: str) -> NetworkInterface:
        interface = self._store.get_interface(interface_id)
        if interface is None:
            raise not_found("network-interface", interface_id, operation)
        return interface

    def _require_group(self, group_id: str, operation: str) -> SecurityGroup:
        group = self._store.get_security_group(group_id)
        if group is None:
            raise not_found("security-group", group_id, operation)
        return group

    def _entries_associated_with(
        self, allocation_id: str
    ) -> list[NetworkInterfacePrivateIpAddress]:
        return [
            entry
            for interface in self._store.list_interfaces()
            for entry in interface.private_ip_addresses
            if entry.association is not None and entry.association.allocation_id == allocation_id
        ]

    @staticmethod
    def _assigned_response(
        interface: NetworkInterface, addresses: Iterable[str]
    ) -> AssignPrivateIpAddressesResponse:
        return AssignPrivateIpAddressesResponse(
            network_interface_id=interface.network_interface_id,
            assigned_private_ip_addresses=[
                AssignedPrivateIpAddress(private_ip_address=a) for a in addresses
            ],
        )


def _coerce_request(request_type: type[M], request: Any, params: dict[str, Any]) -> M:
    """Accept a request model, a dict in API field names, or keyword arguments."""
    if request is not None and params:
        raise TypeError("Pass either a request object or keyword arguments, not both")
    if request is None:
        return request_type.model_validate(params)
    return _coerce_model(request_type, request)


def _raw_payload(request: Any, params: dict[str, Any]) -> dict[str, Any]:
    """Request as given by the caller, for calls that fail the schema."""
    if request is None:
        return dict(params)
    return dict(request)


def _coerce_model(model_type: type[M], value: Any) -> M:
    if isinstance(value, model_type):
        return _copy(value)
    if isinstance(value, dict):
        return model_type.model_validate(value)
    raise TypeError(f"Expected {model_type.__name__} or dict, got {type(value).__name__}")


def _resolve_ids(ids: list[str], lookup: Callable[[str], M | None]) -> list[M] | None:
    """Resolve explicit ids in request order; None if no ids were given."""
    if not ids:
        return None
    resolved: list[M] = []
    for resource_id in dict.fromkeys(ids):
        item = lookup(resource_id)
        if item is not None:
            resolved.append(item)
    return resolved


def _merge_tags(existing: list[Tag], new: list[Tag]) -> list[Tag]:
    merged = {tag.key: tag.value for tag in existing}
    for tag in new:
        merged[tag.key] = tag.value
    return [Tag(key=k, value=v) for k, v in merged.items()]


def _kind_for_id(resource_id: str) -> str:
    for prefix, kind in ID_PREFIX_KINDS.items():
        if resource_id.startswith(prefix):
            return kind
    return "resource"


__all__ = ["MockEC2", "MockEC2Error", "call_method_name"]
