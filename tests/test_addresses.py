"""Tests for elastic IP handlers."""

from __future__ import annotations

import ipaddress

import pytest

from ec2mock.engine import MockEC2
from ec2mock.errors import InvalidParameterError, ResourceNotFoundError
from ec2mock.models import NetworkInterface


@pytest.fixture
def interface(vpc_engine: MockEC2) -> NetworkInterface:
    """Interface with one secondary address in a fresh subnet."""
    subnet = vpc_engine.create_subnet(VpcId="vpc-1", CidrBlock="10.0.0.0/24").subnet
    assert subnet is not None
    eni = vpc_engine.create_network_interface(
        SubnetId=subnet.subnet_id, SecondaryPrivateIpAddressCount=1
    ).network_interface
    assert eni is not None
    return eni


class TestAllocateAndRelease:
    """Tests for AllocateAddress and ReleaseAddress."""

    def test_two_allocations_differ(self, engine: MockEC2) -> None:
        """Test allocations get distinct ids and addresses from the public block."""
        first = engine.allocate_address(Domain="vpc")
        second = engine.allocate_address(Domain="vpc")

        assert first.allocation_id != second.allocation_id
        assert first.public_ip != second.public_ip
        assert first.allocation_id is not None and first.allocation_id.startswith("eipalloc-")
        assert ipaddress.ip_address(first.public_ip) in ipaddress.ip_network("52.0.0.0/8")
        assert first.domain == "vpc"

    def test_release_then_release_again(self, engine: MockEC2) -> None:
        """Test the second release of an allocation fails not-found."""
        allocation = engine.allocate_address()

        engine.release_address(AllocationId=allocation.allocation_id)

        with pytest.raises(ResourceNotFoundError) as exc_info:
            engine.release_address(AllocationId=allocation.allocation_id)
        assert exc_info.value.error_code == "InvalidAllocationID.NotFound"

    def test_public_addresses_never_reissued(self, engine: MockEC2) -> None:
        """Test a released public address is not handed out again."""
        allocation = engine.allocate_address()
        engine.release_address(AllocationId=allocation.allocation_id)
        assert engine.store.is_reserved("public-ip", allocation.public_ip)

    def test_invalid_domain(self, engine: MockEC2) -> None:
        """Test the domain is validated at the boundary."""
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            engine.allocate_address(Domain="classic")


class TestAssociate:
    """Tests for AssociateAddress and DisassociateAddress."""

    def test_associate_primary_by_default(
        self, vpc_engine: MockEC2, interface: NetworkInterface
    ) -> None:
        """Test the association lands on the primary address."""
        allocation = vpc_engine.allocate_address()

        association_id = vpc_engine.associate_address(
            AllocationId=allocation.allocation_id,
            NetworkInterfaceId=interface.network_interface_id,
        ).association_id

        assert association_id is not None and association_id.startswith("eipassoc-")
        (eni,) = vpc_engine.describe_network_interfaces().network_interfaces
        association = eni.private_ip_addresses[0].association
        assert association is not None
        assert association.association_id == association_id
        assert association.public_ip == allocation.public_ip
        assert association.allocation_id == allocation.allocation_id
        assert association.ip_owner_id == "123456789012"
        assert eni.private_ip_addresses[1].association is None

    def test_associate_secondary(self, vpc_engine: MockEC2, interface: NetworkInterface) -> None:
        """Test an explicit private address receives the association."""
        allocation = vpc_engine.allocate_address()
        secondary = interface.private_ip_addresses[1].private_ip_address

        vpc_engine.associate_address(
            AllocationId=allocation.allocation_id,
            NetworkInterfaceId=interface.network_interface_id,
            PrivateIpAddress=secondary,
        )

        (eni,) = vpc_engine.describe_network_interfaces().network_interfaces
        assert eni.private_ip_addresses[0].association is None
        assert eni.private_ip_addresses[1].association is not None

    def test_associate_unknown_private_address(
        self, vpc_engine: MockEC2, interface: NetworkInterface
    ) -> None:
        """Test the private address must belong to the interface."""
        allocation = vpc_engine.allocate_address()
        with pytest.raises(InvalidParameterError):
            vpc_engine.associate_address(
                AllocationId=allocation.allocation_id,
                NetworkInterfaceId=interface.network_interface_id,
                PrivateIpAddress="10.9.9.9",
            )

    def test_associate_missing_references(
        self, vpc_engine: MockEC2, interface: NetworkInterface
    ) -> None:
        """Test unknown interface and allocation fail not-found."""
        allocation = vpc_engine.allocate_address()

        with pytest.raises(ResourceNotFoundError) as exc_info:
            vpc_engine.associate_address(
                AllocationId=allocation.allocation_id, NetworkInterfaceId="eni-missing"
            )
        assert exc_info.value.error_code == "InvalidNetworkInterfaceID.NotFound"

        with pytest.raises(ResourceNotFoundError) as exc_info:
            vpc_engine.associate_address(
                AllocationId="eipalloc-missing",
                NetworkInterfaceId=interface.network_interface_id,
            )
        assert exc_info.value.error_code == "InvalidAllocationID.NotFound"

    def test_reassociate_moves(self, vpc_engine: MockEC2, interface: NetworkInterface) -> None:
        """Test associating again moves the allocation to the new address."""
        allocation = vpc_engine.allocate_address()
        secondary = interface.private_ip_addresses[1].private_ip_address
        vpc_engine.associate_address(
            AllocationId=allocation.allocation_id,
            NetworkInterfaceId=interface.network_interface_id,
        )

        vpc_engine.associate_address(
            AllocationId=allocation.allocation_id,
            NetworkInterfaceId=interface.network_interface_id,
            PrivateIpAddress=secondary,
        )

        (eni,) = vpc_engine.describe_network_interfaces().network_interfaces
        assert eni.private_ip_addresses[0].association is None
        assert eni.private_ip_addresses[1].association is not None

    def test_disassociate(self, vpc_engine: MockEC2, interface: NetworkInterface) -> None:
        """Test disassociation clears the entry and is logged under its own name."""
        allocation = vpc_engine.allocate_address()
        association_id = vpc_engine.associate_address(
            AllocationId=allocation.allocation_id,
            NetworkInterfaceId=interface.network_interface_id,
        ).association_id

        vpc_engine.disassociate_address(AssociationId=association_id)

        (eni,) = vpc_engine.describe_network_interfaces().network_interfaces
        assert all(p.association is None for p in eni.private_ip_addresses)
        vpc_engine.recorder.assert_called("DisassociateAddress", times=1)

    def test_disassociate_unknown(self, vpc_engine: MockEC2) -> None:
        """Test an unknown association fails not-found."""
        with pytest.raises(ResourceNotFoundError) as exc_info:
            vpc_engine.disassociate_address(AssociationId="eipassoc-missing")
        assert exc_info.value.error_code == "InvalidAssociationID.NotFound"

    def test_release_clears_association(
        self, vpc_engine: MockEC2, interface: NetworkInterface
    ) -> None:
        """Test releasing an associated allocation clears the association."""
        allocation = vpc_engine.allocate_address()
        vpc_engine.associate_address(
            AllocationId=allocation.allocation_id,
            NetworkInterfaceId=interface.network_interface_id,
        )

        vpc_engine.release_address(AllocationId=allocation.allocation_id)

        (eni,) = vpc_engine.describe_network_interfaces().network_interfaces
        assert eni.private_ip_addresses[0].association is None


class TestDescribeAddresses:
    """Tests for DescribeAddresses."""

    def test_by_public_ip(self, engine: MockEC2) -> None:
        """Test lookup by public address."""
        engine.allocate_address()
        second = engine.allocate_address()

        addresses = engine.describe_addresses(PublicIps=[second.public_ip]).addresses

        assert [a.allocation_id for a in addresses] == [second.allocation_id]

    def test_by_allocation_id_and_filter(self, engine: MockEC2) -> None:
        """Test allocation ids combined with a domain filter."""
        vpc = engine.allocate_address(Domain="vpc")
        standard = engine.allocate_address(Domain="standard")

        addresses = engine.describe_addresses(
            AllocationIds=[vpc.allocation_id, standard.allocation_id],
            Filters=[{"Name": "domain", "Values": ["standard"]}],
        ).addresses

        assert [a.allocation_id for a in addresses] == [standard.allocation_id]

    def test_association_fields_derived(
        self, vpc_engine: MockEC2, interface: NetworkInterface
    ) -> None:
        """Test association details come from the interface."""
        allocation = vpc_engine.allocate_address()
        association_id = vpc_engine.associate_address(
            AllocationId=allocation.allocation_id,
            NetworkInterfaceId=interface.network_interface_id,
        ).association_id

        (address,) = vpc_engine.describe_addresses(
            AllocationIds=[allocation.allocation_id]
        ).addresses

        assert address.association_id == association_id
        assert address.network_interface_id == interface.network_interface_id
        assert address.private_ip_address == interface.private_ip_address

    def test_association_on_secondary_address(
        self, vpc_engine: MockEC2, interface: NetworkInterface
    ) -> None:
        """Test the described private address is the associated secondary one."""
        (secondary,) = vpc_engine.assign_private_ip_addresses(
            NetworkInterfaceId=interface.network_interface_id,
            SecondaryPrivateIpAddressCount=1,
        ).assigned_private_ip_addresses
        allocation = vpc_engine.allocate_address()
        association_id = vpc_engine.associate_address(
            AllocationId=allocation.allocation_id,
            NetworkInterfaceId=interface.network_interface_id,
            PrivateIpAddress=secondary.private_ip_address,
        ).association_id

        (address,) = vpc_engine.describe_addresses().addresses

        assert address.association_id == association_id
        assert address.private_ip_address == secondary.private_ip_address
        assert address.network_interface_owner_id == interface.owner_id

    def test_unassociated_has_no_association(self, engine: MockEC2) -> None:
        """Test a fresh allocation reports no association."""
        engine.allocate_address()
        (address,) = engine.describe_addresses().addresses
        assert address.association_id is None
        assert address.network_interface_id is None
