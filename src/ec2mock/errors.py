"""Error taxonomy for the mock engine.

Every default-path failure is a botocore ``ClientError`` carrying the error
code the real EC2 API would return, so code under test handles mock and
live failures the same way::

    try:
        engine.create_subnet(VpcId="vpc-missing", CidrBlock="10.0.0.0/24")
    except ClientError as e:
        assert e.response["Error"]["Code"] == "InvalidVpcID.NotFound"

Injected errors (queued by a test) are raised exactly as queued and need
not derive from anything here.
"""

from __future__ import annotations

from botocore.exceptions import ClientError

# Error codes per resource kind for not-found failures
NOT_FOUND_CODES: dict[str, str] = {
    "vpc": "InvalidVpcID.NotFound",
    "subnet": "InvalidSubnetID.NotFound",
    "network-interface": "InvalidNetworkInterfaceID.NotFound",
    "security-group": "InvalidGroup.NotFound",
    "allocation": "InvalidAllocationID.NotFound",
    "association": "InvalidAssociationID.NotFound",
    "instance": "InvalidInstanceID.NotFound",
}


class MockEC2Error(ClientError):
    """Base class for errors produced by the engine's default logic."""

    code = "InternalError"

    def __init__(self, message: str, operation_name: str, code: str | None = None) -> None:
        """Build a ClientError-compatible error.

        Args:
            message: Human readable error message.
            operation_name: API call that failed (e.g., "CreateSubnet").
            code: EC2 error code; defaults to the class code.
        """
        self.error_code = code or self.code
        self.error_message = message
        super().__init__(
            {
                "Error": {"Code": self.error_code, "Message": message},
                "ResponseMetadata": {"HTTPStatusCode": 400},
            },
            operation_name,
        )


class ResourceNotFoundError(MockEC2Error):
    """A referenced id does not exist in the store."""

    code = "InvalidID"


class InvalidParameterError(MockEC2Error):
    """Malformed or inconsistent input (e.g., unparsable CIDR block)."""

    code = "InvalidParameterValue"


class DependencyViolationError(MockEC2Error):
    """The resource still has dependents and cannot be removed."""

    code = "DependencyViolation"


class ResourceExhaustedError(MockEC2Error):
    """The unique allocator ran out of attempts."""

    code = "InsufficientFreeAddressesInSubnet"


def not_found(kind: str, resource_id: str | None, operation_name: str) -> ResourceNotFoundError:
    """Build the not-found error for a resource kind.

    Args:
        kind: Key of NOT_FOUND_CODES (e.g., "subnet").
        resource_id: The id that could not be resolved.
        operation_name: API call that failed.

    Returns:
        ResourceNotFoundError with the EC2 code for that kind.
    """
    code = NOT_FOUND_CODES.get(kind, ResourceNotFoundError.code)
    return ResourceNotFoundError(
        f"The {kind} ID '{resource_id}' does not exist",
        operation_name,
        code=code,
    )
