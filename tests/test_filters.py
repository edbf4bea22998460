"""Tests for the list-with-filters evaluator."""

from __future__ import annotations

from ec2mock.filters import (
    NETWORK_INTERFACE_FILTERS,
    SECURITY_GROUP_FILTERS,
    SUBNET_FILTERS,
    VPC_FILTERS,
)
from ec2mock.models import Filter, NetworkInterface, SecurityGroup, Subnet, Tag, Vpc


def make_subnets() -> list[Subnet]:
    return [
        Subnet(
            subnet_id="subnet-a",
            vpc_id="vpc-1",
            cidr_block="10.0.0.0/24",
            availability_zone="ap-southeast-1a",
        ),
        Subnet(
            subnet_id="subnet-b",
            vpc_id="vpc-2",
            cidr_block="10.1.0.0/24",
            availability_zone="ap-southeast-1b",
        ),
        Subnet(
            subnet_id="subnet-c",
            vpc_id="vpc-1",
            cidr_block="10.0.1.0/24",
            availability_zone="ap-southeast-1b",
        ),
    ]


def ids(items: list[Subnet]) -> list[str]:
    return [s.subnet_id for s in items]


def f(name: str, *values: str) -> Filter:
    return Filter(name=name, values=list(values))


class TestWithoutFilters:
    """Tests for the id-only and unfiltered stages."""

    def test_everything_when_nothing_given(self) -> None:
        """Test no ids and no filters returns every item in store order."""
        subnets = make_subnets()
        assert ids(SUBNET_FILTERS.apply(subnets, [])) == ["subnet-a", "subnet-b", "subnet-c"]

    def test_id_resolved_items(self) -> None:
        """Test id-resolved items are returned as is."""
        subnets = make_subnets()
        assert ids(SUBNET_FILTERS.apply(subnets, [], [subnets[2]])) == ["subnet-c"]

    def test_empty_id_resolution_is_empty(self) -> None:
        """Test ids that resolved to nothing give nothing."""
        assert SUBNET_FILTERS.apply(make_subnets(), [], []) == []


class TestNarrowing:
    """Tests for progressive narrowing."""

    def test_single_filter(self) -> None:
        """Test a vpc-id filter returns exactly that VPC's subnets."""
        result = SUBNET_FILTERS.apply(make_subnets(), [f("vpc-id", "vpc-1")])
        assert ids(result) == ["subnet-a", "subnet-c"]

    def test_values_are_alternatives(self) -> None:
        """Test several values of one filter match any of them."""
        wanted = f("cidr-block", "10.1.0.0/24", "10.0.1.0/24")
        result = SUBNET_FILTERS.apply(make_subnets(), [wanted])
        assert ids(result) == ["subnet-b", "subnet-c"]

    def test_filters_combine(self) -> None:
        """Test successive filters narrow further."""
        result = SUBNET_FILTERS.apply(
            make_subnets(),
            [f("vpc-id", "vpc-1"), f("availability-zone", "ap-southeast-1b")],
        )
        assert ids(result) == ["subnet-c"]

    def test_empty_narrowing_is_discarded(self) -> None:
        """Test a filter matching nothing leaves the candidates unchanged."""
        result = SUBNET_FILTERS.apply(make_subnets(), [f("vpc-id", "vpc-missing")])
        assert ids(result) == ["subnet-a", "subnet-b", "subnet-c"]

    def test_priority_order_decides(self) -> None:
        """Test vpc-id narrows before cidr-block, so a conflicting block is dropped."""
        result = SUBNET_FILTERS.apply(
            make_subnets(),
            [f("cidr-block", "10.1.0.0/24"), f("vpc-id", "vpc-1")],
        )
        assert ids(result) == ["subnet-a", "subnet-c"]

    def test_narrowing_starts_from_id_resolved(self) -> None:
        """Test filters apply to the id-resolved set, not the whole store."""
        subnets = make_subnets()
        result = SUBNET_FILTERS.apply(subnets, [f("vpc-id", "vpc-1")], [subnets[1], subnets[2]])
        assert ids(result) == ["subnet-c"]

    def test_aliases(self) -> None:
        """Test alternative spellings of recognized names."""
        subnets = make_subnets()
        assert ids(SUBNET_FILTERS.apply(subnets, [f("availabilityZone", "ap-southeast-1a")])) == [
            "subnet-a"
        ]
        assert ids(SUBNET_FILTERS.apply(subnets, [f("cidr", "10.1.0.0/24")])) == ["subnet-b"]
        assert ids(SUBNET_FILTERS.apply(subnets, [f("cidrBlock", "10.1.0.0/24")])) == ["subnet-b"]


class TestRecognition:
    """Tests for unrecognized filter names."""

    def test_only_unrecognized_gives_nothing(self) -> None:
        """Test filters with no recognized name yield an empty result."""
        assert SUBNET_FILTERS.apply(make_subnets(), [f("owner-id", "123")]) == []

    def test_unrecognized_ignored_beside_recognized(self) -> None:
        """Test unrecognized names are skipped when a recognized one is present."""
        result = SUBNET_FILTERS.apply(
            make_subnets(), [f("owner-id", "123"), f("vpc-id", "vpc-2")]
        )
        assert ids(result) == ["subnet-b"]

    def test_tag_filters_only_where_supported(self) -> None:
        """Test tag filters are unrecognized for subnets."""
        assert SUBNET_FILTERS.is_recognized("tag:Name") is False
        assert NETWORK_INTERFACE_FILTERS.is_recognized("tag:Name") is True


class TestPriority:
    """Tests for the declared narrowing orders."""

    def test_subnet_order(self) -> None:
        """Test subnet narrowing order."""
        assert SUBNET_FILTERS.priority == ["vpc-id", "availability-zone", "cidr-block"]

    def test_network_interface_order(self) -> None:
        """Test interface narrowing order ends with tags."""
        assert NETWORK_INTERFACE_FILTERS.priority == [
            "vpc-id",
            "subnet-id",
            "availability-zone",
            "tag:<key>",
        ]

    def test_supplemental_orders(self) -> None:
        """Test VPC and security group orders."""
        assert VPC_FILTERS.priority == ["vpc-id", "cidr-block", "state"]
        assert SECURITY_GROUP_FILTERS.priority == ["group-id", "group-name", "vpc-id"]


class TestTagFilters:
    """Tests for tag:<key> filters on network interfaces."""

    def make_interfaces(self) -> list[NetworkInterface]:
        common = {
            "subnet_id": "subnet-a",
            "vpc_id": "vpc-1",
            "mac_address": "02:00:00:00:00:01",
        }
        return [
            NetworkInterface(
                network_interface_id="eni-1",
                private_ip_address="10.0.0.4",
                tag_set=[Tag(key="Role", value="web")],
                **common,
            ),
            NetworkInterface(
                network_interface_id="eni-2",
                private_ip_address="10.0.0.5",
                tag_set=[Tag(key="Role", value="db")],
                **common,
            ),
            NetworkInterface(network_interface_id="eni-3", private_ip_address="10.0.0.6", **common),
        ]

    def test_matches_key_and_first_value(self) -> None:
        """Test the tag value must equal the filter's first value."""
        wanted = f("tag:Role", "db", "web")
        result = NETWORK_INTERFACE_FILTERS.apply(self.make_interfaces(), [wanted])
        assert [i.network_interface_id for i in result] == ["eni-2"]

    def test_unmatched_tag_is_discarded(self) -> None:
        """Test a tag filter matching nothing leaves candidates unchanged."""
        result = NETWORK_INTERFACE_FILTERS.apply(self.make_interfaces(), [f("tag:Role", "cache")])
        assert len(result) == 3

    def test_tags_narrow_last(self) -> None:
        """Test tags narrow after subnet-id."""
        result = NETWORK_INTERFACE_FILTERS.apply(
            self.make_interfaces(),
            [f("tag:Role", "web"), f("subnet-id", "subnet-a")],
        )
        assert [i.network_interface_id for i in result] == ["eni-1"]


class TestOtherResources:
    """Tests for the supplemental resource types."""

    def test_vpc_state(self) -> None:
        """Test VPC state filter."""
        vpcs = [Vpc(vpc_id="vpc-1"), Vpc(vpc_id="vpc-2", state="pending")]
        result = VPC_FILTERS.apply(vpcs, [f("state", "pending")])
        assert [v.vpc_id for v in result] == ["vpc-2"]

    def test_security_group_name(self) -> None:
        """Test group-name filter."""
        groups = [
            SecurityGroup(group_id="sg-1", group_name="web"),
            SecurityGroup(group_id="sg-2", group_name="db"),
        ]
        result = SECURITY_GROUP_FILTERS.apply(groups, [f("group-name", "db")])
        assert [g.group_id for g in result] == ["sg-2"]

    def test_missing_value_never_matches(self) -> None:
        """Test an unset attribute never matches a filter."""
        groups = [SecurityGroup(group_id="sg-1"), SecurityGroup(group_id="sg-2", vpc_id="vpc-1")]
        result = SECURITY_GROUP_FILTERS.apply(groups, [f("vpc-id", "vpc-1")])
        assert [g.group_id for g in result] == ["sg-2"]


class TestNetworkInterfaceStages:
    """Tests for the full interface order: vpc-id, subnet-id, availability-zone, tags."""

    def make_interfaces(self) -> list[NetworkInterface]:
        layout = [
            ("eni-1", "vpc-1", "subnet-a", "ap-southeast-1a", {"Role": "web"}),
            ("eni-2", "vpc-1", "subnet-a", "ap-southeast-1b", {"Role": "web"}),
            ("eni-3", "vpc-1", "subnet-a", "ap-southeast-1b", {"Role": "db", "Env": "prod"}),
            ("eni-4", "vpc-1", "subnet-b", "ap-southeast-1b", {"Env": "prod"}),
            ("eni-5", "vpc-2", "subnet-c", "ap-southeast-1b", {"Role": "web"}),
        ]
        return [
            NetworkInterface(
                network_interface_id=eni_id,
                vpc_id=vpc_id,
                subnet_id=subnet_id,
                availability_zone=zone,
                mac_address=f"02:00:00:00:00:0{index}",
                private_ip_address=f"10.0.0.{index + 4}",
                tag_set=[Tag(key=k, value=v) for k, v in tags.items()],
            )
            for index, (eni_id, vpc_id, subnet_id, zone, tags) in enumerate(layout, start=1)
        ]

    def result_ids(self, filters: list[Filter]) -> list[str]:
        result = NETWORK_INTERFACE_FILTERS.apply(self.make_interfaces(), filters)
        return [i.network_interface_id for i in result]

    def test_every_stage_narrows(self) -> None:
        """Test each stage narrows the previous one."""
        assert self.result_ids(
            [
                f("tag:Role", "web"),
                f("availability-zone", "ap-southeast-1b"),
                f("subnet-id", "subnet-a"),
                f("vpc-id", "vpc-1"),
            ]
        ) == ["eni-2"]

    def test_zone_after_subnet(self) -> None:
        """Test availability-zone narrows the subnet-id result, not the other way round."""
        assert self.result_ids(
            [f("availability-zone", "ap-southeast-1a"), f("subnet-id", "subnet-b")]
        ) == ["eni-4"]

    def test_zone_before_tags(self) -> None:
        """Test tags narrow the availability-zone result and are discarded if they empty it."""
        assert self.result_ids(
            [
                f("tag:Env", "prod"),
                f("availabilityZone", "ap-southeast-1a"),
                f("subnet-id", "subnet-a"),
            ]
        ) == ["eni-1"]

    def test_several_tag_keys_are_alternatives(self) -> None:
        """Test tag filters with different keys match items carrying any of them."""
        assert self.result_ids(
            [f("tag:Role", "db"), f("tag:Env", "prod"), f("vpc-id", "vpc-1")]
        ) == ["eni-3", "eni-4"]

    def test_unmatched_tag_key_beside_matched(self) -> None:
        """Test a tag key no item carries does not block a matching one."""
        assert self.result_ids([f("tag:Team", "core"), f("tag:Role", "db")]) == ["eni-3"]
