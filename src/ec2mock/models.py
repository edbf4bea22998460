"""Pydantic models for EC2 resources and API payloads.

Field names are snake_case in Python and PascalCase on the wire, matching
the EC2 API (and boto3) shapes:

    subnet = Subnet(subnet_id="subnet-1", vpc_id="vpc-1", cidr_block="10.0.0.0/24")
    subnet.to_api()  # {"SubnetId": "subnet-1", "VpcId": "vpc-1", ...}

Requests validate at the boundary; a payload that does not fit the schema
raises pydantic's ValidationError before the engine touches any state.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_pascal

# =============================================================================
# Base Models
# =============================================================================


class EC2Model(BaseModel):
    """Base model using the EC2 wire names as aliases."""

    model_config = {
        "extra": "ignore",
        "populate_by_name": True,
        "alias_generator": to_pascal,
    }

    def to_api(self) -> dict[str, Any]:
        """Dump in the API's field names, omitting unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        """Serialize in the API's field names."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class Tag(EC2Model):
    """Key/value resource tag."""

    key: str
    value: str = ""


class Filter(EC2Model):
    """Named list filter (e.g., ``{"Name": "vpc-id", "Values": ["vpc-1"]}``)."""

    name: Annotated[str, Field(min_length=1)]
    values: list[str] = Field(default_factory=list)


# =============================================================================
# Resources
# =============================================================================


class Vpc(EC2Model):
    """Virtual network."""

    vpc_id: Annotated[str, Field(min_length=1)]
    cidr_block: str | None = None
    state: str = "available"
    is_default: bool = False
    owner_id: str | None = None
    tags: list[Tag] = Field(default_factory=list)


class SubnetCidrBlockState(EC2Model):
    """State of a secondary block association."""

    state: str


class SubnetIpv6CidrBlockAssociation(EC2Model):
    """Secondary (IPv6) block associated with a subnet."""

    association_id: str
    ipv6_cidr_block: str
    ipv6_cidr_block_state: SubnetCidrBlockState


class Subnet(EC2Model):
    """Subnet inside a VPC."""

    subnet_id: str
    vpc_id: str
    cidr_block: str
    availability_zone: str | None = None
    state: str = "available"
    ipv6_cidr_block_association_set: list[SubnetIpv6CidrBlockAssociation] = Field(
        default_factory=list
    )
    tags: list[Tag] = Field(default_factory=list)


class GroupIdentifier(EC2Model):
    """Security group reference attached to an instance or interface."""

    group_id: str
    group_name: str | None = None


class NetworkInterfaceAssociation(EC2Model):
    """Elastic IP association recorded on a private address."""

    allocation_id: str | None = None
    association_id: str | None = None
    public_ip: str | None = None
    ip_owner_id: str | None = None


class NetworkInterfacePrivateIpAddress(EC2Model):
    """Private address held by a network interface."""

    private_ip_address: str
    private_dns_name: str | None = None
    primary: bool = False
    association: NetworkInterfaceAssociation | None = None


class NetworkInterface(EC2Model):
    """Elastic network interface."""

    network_interface_id: str
    subnet_id: str
    vpc_id: str
    availability_zone: str | None = None
    description: str | None = None
    interface_type: str = "interface"
    mac_address: str
    owner_id: str | None = None
    private_ip_address: str
    private_dns_name: str | None = None
    private_ip_addresses: list[NetworkInterfacePrivateIpAddress] = Field(default_factory=list)
    groups: list[GroupIdentifier] = Field(default_factory=list)
    status: str = "available"
    tag_set: list[Tag] = Field(default_factory=list)


class IpRange(EC2Model):
    """IPv4 source range of an ingress rule."""

    cidr_ip: str | None = None
    description: str | None = None


class IpPermission(EC2Model):
    """Security group rule."""

    ip_protocol: str | None = None
    from_port: int | None = None
    to_port: int | None = None
    ip_ranges: list[IpRange] = Field(default_factory=list)


class SecurityGroup(EC2Model):
    """Security group with ordered ingress rules."""

    group_id: str
    group_name: str | None = None
    description: str | None = None
    vpc_id: str | None = None
    owner_id: str | None = None
    ip_permissions: list[IpPermission] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)


class Address(EC2Model):
    """Elastic IP allocation, with association details when associated."""

    allocation_id: str
    public_ip: str
    domain: str = "vpc"
    association_id: str | None = None
    network_interface_id: str | None = None
    network_interface_owner_id: str | None = None
    private_ip_address: str | None = None
    tags: list[Tag] = Field(default_factory=list)


class Instance(EC2Model):
    """Compute instance (seeded or injected; no lifecycle calls)."""

    instance_id: Annotated[str, Field(min_length=1)]
    image_id: str | None = None
    instance_type: str | None = None
    vpc_id: str | None = None
    subnet_id: str | None = None
    private_ip_address: str | None = None
    security_groups: list[GroupIdentifier] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)


class Reservation(EC2Model):
    """Instance reservation wrapper returned by DescribeInstances."""

    reservation_id: str | None = None
    owner_id: str | None = None
    instances: list[Instance] = Field(default_factory=list)


class AssignedPrivateIpAddress(EC2Model):
    """Address returned by AssignPrivateIpAddresses."""

    private_ip_address: str


# =============================================================================
# Requests
# =============================================================================


class ListRequest(EC2Model):
    """Common shape of describe calls."""

    filters: list[Filter] = Field(default_factory=list)


class IngressRequest(EC2Model):
    """Shared shape of authorize/revoke ingress calls.

    Accepts the flat single-rule form and the ``IpPermissions`` list form.
    """

    group_id: Annotated[str, Field(min_length=1)]
    ip_protocol: str | None = None
    from_port: int | None = None
    to_port: int | None = None
    cidr_ip: str | None = None
    ip_permissions: list[IpPermission] = Field(default_factory=list)

    def rules(self) -> list[IpPermission]:
        """All rules carried by this request, flat form first."""
        rules: list[IpPermission] = []
        if self.ip_protocol is not None:
            rules.append(
                IpPermission(
                    ip_protocol=self.ip_protocol,
                    from_port=self.from_port,
                    to_port=self.to_port,
                    ip_ranges=[IpRange(cidr_ip=self.cidr_ip)] if self.cidr_ip else [],
                )
            )
        rules.extend(self.ip_permissions)
        return rules


class CreateVpcRequest(EC2Model):
    cidr_block: Annotated[str, Field(min_length=1)]


class DescribeVpcsRequest(ListRequest):
    vpc_ids: list[str] = Field(default_factory=list)


class CreateSubnetRequest(EC2Model):
    vpc_id: Annotated[str, Field(min_length=1)]
    cidr_block: Annotated[str, Field(min_length=1)]
    availability_zone: str | None = None
    ipv6_cidr_block: str | None = None


class DescribeSubnetsRequest(ListRequest):
    subnet_ids: list[str] = Field(default_factory=list)


class DeleteSubnetRequest(EC2Model):
    subnet_id: Annotated[str, Field(min_length=1)]


class CreateNetworkInterfaceRequest(EC2Model):
    subnet_id: Annotated[str, Field(min_length=1)]
    description: str | None = None
    private_ip_address: str | None = None
    groups: list[str] = Field(default_factory=list)
    secondary_private_ip_address_count: Annotated[int, Field(ge=1)] | None = None


class DeleteNetworkInterfaceRequest(EC2Model):
    network_interface_id: Annotated[str, Field(min_length=1)]


class DescribeNetworkInterfacesRequest(ListRequest):
    network_interface_ids: list[str] = Field(default_factory=list)


class AllocateAddressRequest(EC2Model):
    domain: str = "vpc"

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        if v not in {"vpc", "standard"}:
            raise ValueError("Domain must be one of {'vpc', 'standard'}")
        return v


class ReleaseAddressRequest(EC2Model):
    allocation_id: Annotated[str, Field(min_length=1)]


class AssociateAddressRequest(EC2Model):
    allocation_id: Annotated[str, Field(min_length=1)]
    network_interface_id: Annotated[str, Field(min_length=1)]
    private_ip_address: str | None = None
    public_ip: str | None = None


class DisassociateAddressRequest(EC2Model):
    association_id: Annotated[str, Field(min_length=1)]


class DescribeAddressesRequest(ListRequest):
    public_ips: list[str] = Field(default_factory=list)
    allocation_ids: list[str] = Field(default_factory=list)


class CreateSecurityGroupRequest(EC2Model):
    group_name: Annotated[str, Field(min_length=1, max_length=255)]
    description: str = ""
    vpc_id: str | None = None


class DeleteSecurityGroupRequest(EC2Model):
    group_id: Annotated[str, Field(min_length=1)]


class DescribeSecurityGroupsRequest(ListRequest):
    group_ids: list[str] = Field(default_factory=list)


class AuthorizeSecurityGroupIngressRequest(IngressRequest):
    pass


class RevokeSecurityGroupIngressRequest(IngressRequest):
    pass


class AssignPrivateIpAddressesRequest(EC2Model):
    network_interface_id: Annotated[str, Field(min_length=1)]
    private_ip_addresses: list[str] = Field(default_factory=list)
    secondary_private_ip_address_count: Annotated[int, Field(ge=1)] | None = None


class UnassignPrivateIpAddressesRequest(EC2Model):
    network_interface_id: Annotated[str, Field(min_length=1)]
    private_ip_addresses: list[str] = Field(default_factory=list)


class DescribeInstancesRequest(ListRequest):
    instance_ids: list[str] = Field(default_factory=list)


class DescribeInstanceAttributeRequest(EC2Model):
    instance_id: Annotated[str, Field(min_length=1)]
    attribute: Annotated[str, Field(min_length=1)]


class CreateTagsRequest(EC2Model):
    resources: Annotated[list[str], Field(min_length=1)]
    tags: list[Tag] = Field(default_factory=list)


# =============================================================================
# Responses
# =============================================================================


class CreateVpcResponse(EC2Model):
    vpc: Vpc | None = None


class DescribeVpcsResponse(EC2Model):
    vpcs: list[Vpc] = Field(default_factory=list)


class CreateSubnetResponse(EC2Model):
    subnet: Subnet | None = None


class DescribeSubnetsResponse(EC2Model):
    subnets: list[Subnet] = Field(default_factory=list)


class DeleteSubnetResponse(EC2Model):
    pass


class CreateNetworkInterfaceResponse(EC2Model):
    network_interface: NetworkInterface | None = None


class DeleteNetworkInterfaceResponse(EC2Model):
    pass


class DescribeNetworkInterfacesResponse(EC2Model):
    network_interfaces: list[NetworkInterface] = Field(default_factory=list)


class AllocateAddressResponse(EC2Model):
    allocation_id: str | None = None
    public_ip: str | None = None
    domain: str | None = None


class ReleaseAddressResponse(EC2Model):
    pass


class AssociateAddressResponse(EC2Model):
    association_id: str | None = None


class DisassociateAddressResponse(EC2Model):
    pass


class DescribeAddressesResponse(EC2Model):
    addresses: list[Address] = Field(default_factory=list)


class CreateSecurityGroupResponse(EC2Model):
    group_id: str | None = None


class DeleteSecurityGroupResponse(EC2Model):
    pass


class DescribeSecurityGroupsResponse(EC2Model):
    security_groups: list[SecurityGroup] = Field(default_factory=list)


class AuthorizeSecurityGroupIngressResponse(EC2Model):
    return_: bool = Field(True, alias="Return")


class RevokeSecurityGroupIngressResponse(EC2Model):
    return_: bool = Field(True, alias="Return")


class AssignPrivateIpAddressesResponse(EC2Model):
    network_interface_id: str | None = None
    assigned_private_ip_addresses: list[AssignedPrivateIpAddress] = Field(default_factory=list)


class UnassignPrivateIpAddressesResponse(EC2Model):
    pass


class DescribeInstancesResponse(EC2Model):
    reservations: list[Reservation] = Field(default_factory=list)


class DescribeInstanceAttributeResponse(EC2Model):
    instance_id: str | None = None
    groups: list[GroupIdentifier] | None = None


class CreateTagsResponse(EC2Model):
    pass


# =============================================================================
# Call Registry
# =============================================================================

# API call name -> (request model, response model)
CALL_MODELS: dict[str, tuple[type[EC2Model], type[EC2Model]]] = {
    "CreateVpc": (CreateVpcRequest, CreateVpcResponse),
    "DescribeVpcs": (DescribeVpcsRequest, DescribeVpcsResponse),
    "CreateSubnet": (CreateSubnetRequest, CreateSubnetResponse),
    "DescribeSubnets": (DescribeSubnetsRequest, DescribeSubnetsResponse),
    "DeleteSubnet": (DeleteSubnetRequest, DeleteSubnetResponse),
    "CreateNetworkInterface": (CreateNetworkInterfaceRequest, CreateNetworkInterfaceResponse),
    "DeleteNetworkInterface": (DeleteNetworkInterfaceRequest, DeleteNetworkInterfaceResponse),
    "DescribeNetworkInterfaces": (
        DescribeNetworkInterfacesRequest,
        DescribeNetworkInterfacesResponse,
    ),
    "AllocateAddress": (AllocateAddressRequest, AllocateAddressResponse),
    "ReleaseAddress": (ReleaseAddressRequest, ReleaseAddressResponse),
    "AssociateAddress": (AssociateAddressRequest, AssociateAddressResponse),
    "DisassociateAddress": (DisassociateAddressRequest, DisassociateAddressResponse),
    "DescribeAddresses": (DescribeAddressesRequest, DescribeAddressesResponse),
    "CreateSecurityGroup": (CreateSecurityGroupRequest, CreateSecurityGroupResponse),
    "DeleteSecurityGroup": (DeleteSecurityGroupRequest, DeleteSecurityGroupResponse),
    "DescribeSecurityGroups": (DescribeSecurityGroupsRequest, DescribeSecurityGroupsResponse),
    "AuthorizeSecurityGroupIngress": (
        AuthorizeSecurityGroupIngressRequest,
        AuthorizeSecurityGroupIngressResponse,
    ),
    "RevokeSecurityGroupIngress": (
        RevokeSecurityGroupIngressRequest,
        RevokeSecurityGroupIngressResponse,
    ),
    "AssignPrivateIpAddresses": (
        AssignPrivateIpAddressesRequest,
        AssignPrivateIpAddressesResponse,
    ),
    "UnassignPrivateIpAddresses": (
        UnassignPrivateIpAddressesRequest,
        UnassignPrivateIpAddressesResponse,
    ),
    "DescribeInstances": (DescribeInstancesRequest, DescribeInstancesResponse),
    "DescribeInstanceAttribute": (
        DescribeInstanceAttributeRequest,
        DescribeInstanceAttributeResponse,
    ),
    "CreateTags": (CreateTagsRequest, CreateTagsResponse),
}


def get_call_models(call_name: str) -> tuple[type[EC2Model], type[EC2Model]]:
    """Get the request and response models of an API call.

    Raises:
        KeyError: If the call is not supported.
    """
    try:
        return CALL_MODELS[call_name]
    except KeyError:
        valid = sorted(CALL_MODELS)
        raise KeyError(f"Unknown call '{call_name}'. Supported calls: {valid}") from None
