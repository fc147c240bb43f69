# src/prefix_copy/acl.py
"""
Access-control list model and the destination owner grant merge.

Grants are kept in the order the storage API returns them and are never
deduplicated: the merged list always ends with one extra FULL_CONTROL grant
for the destination bucket owner, even when that owner already holds one.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from prefix_copy.exceptions import TransferError


class Permission(Enum):
    """Permissions a grant can carry."""

    READ = "READ"
    WRITE = "WRITE"
    READ_ACP = "READ_ACP"
    WRITE_ACP = "WRITE_ACP"
    FULL_CONTROL = "FULL_CONTROL"


class GrantType(Enum):
    """How the principal of a grant is identified."""

    ID = "CanonicalUser"
    EMAIL = "AmazonCustomerByEmail"
    GROUP = "Group"
    # Looked up by canonical id, like ID, but added by this tool
    NONE = "None"


@dataclass(frozen=True)
class Owner:
    """
    The owner of a bucket or object.

    Attributes:
        id (str): The canonical user id.
        display_name (str): The display name, empty when the API omits it.
    """

    id: str
    display_name: str = ""

    @classmethod
    def from_boto(cls, data: Mapping[str, Any]) -> "Owner":
        if not data.get("ID"):
            raise TransferError("Owner has no canonical id.")
        return cls(id=data["ID"], display_name=data.get("DisplayName", ""))

    def to_boto(self) -> Dict[str, str]:
        owner: Dict[str, str] = {"ID": self.id}
        if self.display_name:
            owner["DisplayName"] = self.display_name
        return owner


@dataclass(frozen=True)
class Grantee:
    """
    A single ACL grant.

    Attributes:
        principal_id (str): Canonical id, email address or group URI,
            depending on `grant_type`.
        permission (Permission): The granted permission.
        grant_type (GrantType): How `principal_id` is interpreted.
        display_name (str): Display name of a canonical user, if known.
    """

    principal_id: str
    permission: Permission
    grant_type: GrantType
    display_name: str = ""

    @classmethod
    def from_boto(cls, grant: Mapping[str, Any]) -> "Grantee":
        """
        Builds a grantee from one entry of a `Grants` list.

        Args:
            grant (Mapping[str, Any]): The boto3 grant dictionary.

        Returns:
            Grantee: The parsed grant.
        """
        grantee: Mapping[str, Any] = grant["Grantee"]
        grant_type: GrantType = GrantType(grantee["Type"])
        principal: Optional[str]
        if grant_type is GrantType.EMAIL:
            principal = grantee.get("EmailAddress")
        elif grant_type is GrantType.GROUP:
            principal = grantee.get("URI")
        else:
            principal = grantee.get("ID")
        if not principal:
            raise TransferError(f"Grant without a principal: {grant!r}")
        return cls(
            principal_id=principal,
            permission=Permission(grant["Permission"]),
            grant_type=grant_type,
            display_name=grantee.get("DisplayName", ""),
        )

    def to_boto(self) -> Dict[str, Any]:
        """
        Renders the grant as a `Grants` entry for `put_object_acl`.

        Returns:
            Dict[str, Any]: The boto3 grant dictionary.
        """
        grantee: Dict[str, str]
        if self.grant_type is GrantType.EMAIL:
            grantee = {"Type": GrantType.EMAIL.value, "EmailAddress": self.principal_id}
        elif self.grant_type is GrantType.GROUP:
            grantee = {"Type": GrantType.GROUP.value, "URI": self.principal_id}
        else:
            grantee = {"Type": GrantType.ID.value, "ID": self.principal_id}
            if self.display_name:
                grantee["DisplayName"] = self.display_name
        return {"Grantee": grantee, "Permission": self.permission.value}


def grantees_from_acl(acl: Mapping[str, Any]) -> List[Grantee]:
    """
    Extracts the grant list of a `get_object_acl` response.

    Args:
        acl (Mapping[str, Any]): The response of `get_object_acl`.

    Returns:
        List[Grantee]: The grants, in API order.
    """
    return [Grantee.from_boto(grant) for grant in acl.get("Grants", [])]


def merge_owner_grant(grantees: List[Grantee], owner: Owner) -> List[Grantee]:
    """
    Appends a FULL_CONTROL grant for `owner` to a copy of `grantees`.

    Args:
        grantees (List[Grantee]): The grants of the source object.
        owner (Owner): The destination bucket owner.

    Returns:
        List[Grantee]: The original grants followed by the owner grant.
    """
    return [
        *grantees,
        Grantee(
            principal_id=owner.id,
            permission=Permission.FULL_CONTROL,
            grant_type=GrantType.NONE,
        ),
    ]


def build_access_control_policy(
    grantees: List[Grantee], me: Owner
) -> Dict[str, Any]:
    """
    Builds the `AccessControlPolicy` argument of `put_object_acl`.

    Args:
        grantees (List[Grantee]): The grants to apply.
        me (Owner): The caller identity the policy is issued as.

    Returns:
        Dict[str, Any]: The policy document.
    """
    return {
        "Grants": [grantee.to_boto() for grantee in grantees],
        "Owner": me.to_boto(),
    }
