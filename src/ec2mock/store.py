"""In-memory resource state for the mock engine.

Holds one collection per resource type plus the namespaced sets of values
that must stay unique (private addresses per subnet, interface ids, MAC
addresses, ...). Lookups return None on absence; turning absence into an
API error is the caller's job.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from .models import Address, Instance, NetworkInterface, SecurityGroup, Subnet, Vpc

# Reservation namespaces
NS_VPC_ID = "vpc-id"
NS_SUBNET_ID = "subnet-id"
NS_SUBNET_ASSOCIATION_ID = "subnet-cidr-assoc-id"
NS_INTERFACE_ID = "eni-id"
NS_MAC = "mac"
NS_GROUP_ID = "sg-id"
NS_ALLOCATION_ID = "allocation-id"
NS_ASSOCIATION_ID = "association-id"
NS_PUBLIC_IP = "public-ip"


def private_ip_namespace(subnet_id: str) -> str:
    """Namespace of the private addresses assigned inside one subnet."""
    return f"private-ip:{subnet_id}"


class ResourceStore:
    """Authoritative in-memory state.

    Thread-safe: every method takes the store lock, and callers that need
    several steps to be atomic hold ``store.lock`` (re-entrant) around them.
    """

    def __init__(self) -> None:
        """Initialize empty state."""
        self.lock = threading.RLock()
        self._vpcs: dict[str, Vpc] = {}
        self._subnets: dict[str, Subnet] = {}
        self._interfaces: dict[str, NetworkInterface] = {}
        self._security_groups: dict[str, SecurityGroup] = {}
        self._addresses: dict[str, Address] = {}
        self._instances: dict[str, Instance] = {}
        self._reserved: dict[str, set[str]] = {}

    # -------------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------------

    def reserve(self, namespace: str, value: str) -> bool:
        """Reserve a value if it is free.

        Check and insert happen in one critical section.

        Returns:
            True if the value was free and is now reserved, False otherwise.
        """
        with self.lock:
            values = self._reserved.setdefault(namespace, set())
            if value in values:
                return False
            values.add(value)
            return True

    def force_reserve(self, namespace: str, values: Iterable[str]) -> None:
        """Mark values as reserved without checking for collisions."""
        with self.lock:
            self._reserved.setdefault(namespace, set()).update(values)

    def release(self, namespace: str, values: Iterable[str]) -> None:
        """Return values to the pool; unknown values are ignored."""
        with self.lock:
            reserved = self._reserved.get(namespace)
            if reserved is not None:
                reserved.difference_update(values)

    def is_reserved(self, namespace: str, value: str) -> bool:
        with self.lock:
            return value in self._reserved.get(namespace, ())

    def reserved(self, namespace: str) -> set[str]:
        """Snapshot of the values reserved in a namespace."""
        with self.lock:
            return set(self._reserved.get(namespace, ()))

    def drop_namespace(self, namespace: str) -> None:
        with self.lock:
            self._reserved.pop(namespace, None)

    # -------------------------------------------------------------------------
    # VPCs
    # -------------------------------------------------------------------------

    def get_vpc(self, vpc_id: str | None) -> Vpc | None:
        with self.lock:
            return self._vpcs.get(vpc_id) if vpc_id else None

    def list_vpcs(self) -> list[Vpc]:
        with self.lock:
            return list(self._vpcs.values())

    def put_vpc(self, vpc: Vpc) -> Vpc:
        with self.lock:
            self._vpcs[vpc.vpc_id] = vpc
            self._reserved.setdefault(NS_VPC_ID, set()).add(vpc.vpc_id)
            return vpc

    # -------------------------------------------------------------------------
    # Subnets
    # -------------------------------------------------------------------------

    def get_subnet(self, subnet_id: str | None) -> Subnet | None:
        with self.lock:
            return self._subnets.get(subnet_id) if subnet_id else None

    def list_subnets(self) -> list[Subnet]:
        with self.lock:
            return list(self._subnets.values())

    def subnets_in_vpc(self, vpc_id: str) -> list[Subnet]:
        """All subnets whose parent is the given VPC."""
        with self.lock:
            return [s for s in self._subnets.values() if s.vpc_id == vpc_id]

    def put_subnet(self, subnet: Subnet) -> Subnet:
        with self.lock:
            self._subnets[subnet.subnet_id] = subnet
            return subnet

    def delete_subnet(self, subnet_id: str) -> bool:
        """Delete a subnet and its private address pool.

        Returns:
            True if deleted, False if not found.
        """
        with self.lock:
            if subnet_id not in self._subnets:
                return False
            del self._subnets[subnet_id]
            self._reserved.pop(private_ip_namespace(subnet_id), None)
            return True

    # -------------------------------------------------------------------------
    # Network interfaces
    # -------------------------------------------------------------------------

    def get_interface(self, interface_id: str | None) -> NetworkInterface | None:
        with self.lock:
            return self._interfaces.get(interface_id) if interface_id else None

    def list_interfaces(self) -> list[NetworkInterface]:
        with self.lock:
            return list(self._interfaces.values())

    def interfaces_in_subnet(self, subnet_id: str) -> list[NetworkInterface]:
        with self.lock:
            return [i for i in self._interfaces.values() if i.subnet_id == subnet_id]

    def put_interface(self, interface: NetworkInterface) -> NetworkInterface:
        with self.lock:
            self._interfaces[interface.network_interface_id] = interface
            return interface

    def delete_interface(self, interface_id: str) -> NetworkInterface | None:
        """Remove an interface.

        Returns:
            The removed interface, or None if not found.
        """
        with self.lock:
            return self._interfaces.pop(interface_id, None)

    # -------------------------------------------------------------------------
    # Security groups
    # -------------------------------------------------------------------------

    def get_security_group(self, group_id: str | None) -> SecurityGroup | None:
        with self.lock:
            return self._security_groups.get(group_id) if group_id else None

    def list_security_groups(self) -> list[SecurityGroup]:
        with self.lock:
            return list(self._security_groups.values())

    def put_security_group(self, group: SecurityGroup) -> SecurityGroup:
        with self.lock:
            self._security_groups[group.group_id] = group
            self._reserved.setdefault(NS_GROUP_ID, set()).add(group.group_id)
            return group

    def delete_security_group(self, group_id: str) -> bool:
        with self.lock:
            if group_id in self._security_groups:
                del self._security_groups[group_id]
                return True
            return False

    # -------------------------------------------------------------------------
    # Elastic IP allocations
    # -------------------------------------------------------------------------

    def get_address(self, allocation_id: str | None) -> Address | None:
        with self.lock:
            return self._addresses.get(allocation_id) if allocation_id else None

    def list_addresses(self) -> list[Address]:
        with self.lock:
            return list(self._addresses.values())

    def put_address(self, address: Address) -> Address:
        with self.lock:
            self._addresses[address.allocation_id] = address
            return address

    def delete_address(self, allocation_id: str) -> bool:
        with self.lock:
            if allocation_id in self._addresses:
                del self._addresses[allocation_id]
                return True
            return False

    # -------------------------------------------------------------------------
    # Instances
    # -------------------------------------------------------------------------

    def get_instance(self, instance_id: str | None) -> Instance | None:
        with self.lock:
            return self._instances.get(instance_id) if instance_id else None

    def list_instances(self) -> list[Instance]:
        with self.lock:
            return list(self._instances.values())

    def put_instance(self, instance: Instance) -> Instance:
        with self.lock:
            self._instances[instance.instance_id] = instance
            return instance

    # -------------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------------

    @property
    def resource_count(self) -> int:
        """Total number of stored resources of all types."""
        with self.lock:
            return (
                len(self._vpcs)
                + len(self._subnets)
                + len(self._interfaces)
                + len(self._security_groups)
                + len(self._addresses)
                + len(self._instances)
            )

    def clear(self) -> None:
        """Clear all state, including reservations."""
        with self.lock:
            self._vpcs.clear()
            self._subnets.clear()
            self._interfaces.clear()
            self._security_groups.clear()
            self._addresses.clear()
            self._instances.clear()
            self._reserved.clear()
