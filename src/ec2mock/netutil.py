"""Stateless random helpers for addresses and identifiers.

Every function takes the caller's ``random.Random`` so an engine built with
a fixed seed produces the same ids and addresses on every run.
"""

from __future__ import annotations

import ipaddress
import random

# Hex digits in generated resource ids (matches the long EC2 id format)
RESOURCE_ID_HEX_DIGITS = 17


def parse_cidr(cidr: str | None) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
    """Parse a CIDR block, rejecting host bits.

    Raises:
        ValueError: If the block is missing or malformed.
    """
    if not cidr or "/" not in cidr:
        raise ValueError(f"'{cidr}' is not in CIDR notation")
    return ipaddress.ip_network(cidr, strict=True)


def pick_random_host(cidr: str, rng: random.Random) -> str:
    """Pick a pseudo-random host address inside a CIDR block.

    The network and broadcast addresses are never returned for blocks of
    four addresses or more.

    Args:
        cidr: Address block (e.g., "10.0.0.0/24").
        rng: Random source.

    Returns:
        Host address as a string.

    Raises:
        ValueError: If the block is malformed.
    """
    network = parse_cidr(cidr)
    size = network.num_addresses
    if size >= 4:
        offset = rng.randint(1, size - 2)
    else:
        offset = rng.randint(0, size - 1)
    return str(network.network_address + offset)


def random_mac(rng: random.Random) -> str:
    """Generate a random locally administered unicast MAC address."""
    first = (rng.randrange(256) & 0xFC) | 0x02
    octets = [first] + [rng.randrange(256) for _ in range(5)]
    return ":".join(f"{octet:02x}" for octet in octets)


def random_id(prefix: str, rng: random.Random) -> str:
    """Generate an EC2 style resource id, e.g. ``eni-0a1b2c3d4e5f60718``."""
    suffix = f"{rng.getrandbits(RESOURCE_ID_HEX_DIGITS * 4):0{RESOURCE_ID_HEX_DIGITS}x}"
    return f"{prefix}-{suffix}"


def private_dns_name(address: str, region: str) -> str:
    """Derive the private DNS name EC2 assigns to a private address."""
    return f"ip-{address.replace('.', '-')}.{region}.compute.internal"


def address_in_block(address: str, cidr: str) -> bool:
    """Check whether an address lies inside a block; malformed input is False."""
    try:
        return ipaddress.ip_address(address) in ipaddress.ip_network(cidr, strict=False)
    except ValueError:
        return False
