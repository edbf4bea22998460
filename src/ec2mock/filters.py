"""List-with-filters evaluation for describe calls.

Describe calls resolve explicit ids first and then narrow the candidates
one recognized filter name at a time, in a fixed priority order:

    candidates = id-resolved items, or every item if no ids were given
    for each recognized filter name, in priority order:
        subset = candidates matching any value of that name
        if subset: candidates = subset      # an empty subset is discarded

So filters act independently rather than as a strict intersection: a
filter that would empty the result is skipped. If filters are given but
none of their names is recognized, the result is empty.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .models import Address, Filter, Instance, NetworkInterface, SecurityGroup, Subnet, Tag, Vpc

T = TypeVar("T")

TAG_FILTER_PREFIX = "tag:"


@dataclass(frozen=True)
class FilterField(Generic[T]):
    """A recognized filter name and how to read its value from an item.

    Attributes:
        name: Canonical filter name (e.g., "vpc-id").
        accessor: Returns the item's value for this filter.
        aliases: Other names accepted for the same filter.
    """

    name: str
    accessor: Callable[[T], Any]
    aliases: tuple[str, ...] = ()

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


@dataclass(frozen=True)
class FilterSpec(Generic[T]):
    """Recognized filters for one resource type, in priority order.

    Attributes:
        fields: Filter fields in narrowing order.
        tags: Accessor for the item's tags, if ``tag:<key>`` filters apply.
            Tag filters form the last narrowing stage.
    """

    fields: tuple[FilterField[T], ...]
    tags: Callable[[T], Sequence[Tag]] | None = None

    def is_recognized(self, name: str) -> bool:
        if any(name in f.names for f in self.fields):
            return True
        return self.tags is not None and name.startswith(TAG_FILTER_PREFIX)

    @property
    def priority(self) -> list[str]:
        """Narrowing order as filter names."""
        order = [f.name for f in self.fields]
        if self.tags is not None:
            order.append(f"{TAG_FILTER_PREFIX}<key>")
        return order

    def apply(
        self,
        items: Sequence[T],
        filters: Sequence[Filter],
        id_resolved: Sequence[T] | None = None,
    ) -> list[T]:
        """Evaluate the list-query contract.

        Args:
            items: Every item of this resource type, in store order.
            filters: Filters from the request.
            id_resolved: Items matched by explicit ids, or None if the request
                carried no ids.

        Returns:
            Matching items, in store order, without duplicates.
        """
        start = list(items) if id_resolved is None else list(id_resolved)
        if not filters:
            return start

        if not any(self.is_recognized(f.name) for f in filters):
            return []

        candidates = start
        for filter_field in self.fields:
            wanted = _values_for(filters, filter_field.names)
            if wanted is None:
                continue
            subset = [c for c in candidates if _matches(filter_field.accessor(c), wanted)]
            if subset:
                candidates = subset

        if self.tags is not None:
            tag_filters = [f for f in filters if f.name.startswith(TAG_FILTER_PREFIX)]
            if tag_filters:
                get_tags = self.tags
                subset = [
                    c for c in candidates if any(_tag_matches(get_tags(c), f) for f in tag_filters)
                ]
                if subset:
                    candidates = subset

        return candidates


def _values_for(filters: Sequence[Filter], names: tuple[str, ...]) -> set[str] | None:
    """Union of the values of every filter with one of the given names."""
    matching = [f for f in filters if f.name in names]
    if not matching:
        return None
    return {value for f in matching for value in f.values}


def _matches(value: Any, wanted: set[str]) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, set)):
        return any(str(v) in wanted for v in value)
    if isinstance(value, bool):
        return str(value).lower() in wanted
    return str(value) in wanted


def _tag_matches(tags: Sequence[Tag], tag_filter: Filter) -> bool:
    """A tag filter matches a tag with its key and the filter's first value."""
    key = tag_filter.name[len(TAG_FILTER_PREFIX) :]
    if not tag_filter.values:
        return False
    expected = tag_filter.values[0]
    return any(tag.key == key and tag.value == expected for tag in tags)


# =============================================================================
# Recognized Filters per Resource Type
# =============================================================================

SUBNET_FILTERS: FilterSpec[Subnet] = FilterSpec(
    fields=(
        FilterField("vpc-id", lambda s: s.vpc_id),
        FilterField("availability-zone", lambda s: s.availability_zone, ("availabilityZone",)),
        FilterField("cidr-block", lambda s: s.cidr_block, ("cidrBlock", "cidr")),
    ),
)

NETWORK_INTERFACE_FILTERS: FilterSpec[NetworkInterface] = FilterSpec(
    fields=(
        FilterField("vpc-id", lambda i: i.vpc_id),
        FilterField("subnet-id", lambda i: i.subnet_id),
        FilterField("availability-zone", lambda i: i.availability_zone, ("availabilityZone",)),
    ),
    tags=lambda i: i.tag_set,
)

VPC_FILTERS: FilterSpec[Vpc] = FilterSpec(
    fields=(
        FilterField("vpc-id", lambda v: v.vpc_id),
        FilterField("cidr-block", lambda v: v.cidr_block, ("cidr", "cidrBlock")),
        FilterField("state", lambda v: v.state),
    ),
)

SECURITY_GROUP_FILTERS: FilterSpec[SecurityGroup] = FilterSpec(
    fields=(
        FilterField("group-id", lambda g: g.group_id),
        FilterField("group-name", lambda g: g.group_name),
        FilterField("vpc-id", lambda g: g.vpc_id),
    ),
)

ADDRESS_FILTERS: FilterSpec[Address] = FilterSpec(
    fields=(
        FilterField("allocation-id", lambda a: a.allocation_id),
        FilterField("public-ip", lambda a: a.public_ip),
        FilterField("domain", lambda a: a.domain),
    ),
)

INSTANCE_FILTERS: FilterSpec[Instance] = FilterSpec(
    fields=(FilterField("instance-id", lambda i: i.instance_id),),
)
