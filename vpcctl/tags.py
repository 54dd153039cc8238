"""
Tagging helpers so every resource vpcctl creates can be traced back to it.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional


def base_tags(vpc_name: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Generate the tags shared by every resource of one VPC.

    Args:
        vpc_name: Name of the VPC being provisioned
        extra: Additional tags to include

    Returns:
        Dictionary of tags to apply to resources
    """
    tags = {
        "project": "vpcctl",
        "vpc_name": vpc_name,
        "created_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }

    if extra:
        tags.update(extra)

    return tags


def named(tags: Dict[str, str], name: str) -> Dict[str, str]:
    """Return a copy of tags with the Name tag set."""
    result = tags.copy()
    result["Name"] = name
    return result


def tag_specifications(resource_type: str, tags: Dict[str, str]) -> List[Dict]:
    """
    Build the TagSpecifications argument accepted by EC2 create calls.

    Args:
        resource_type: EC2 resource type (e.g. "vpc", "natgateway")
        tags: Tags to apply

    Returns:
        Single-element TagSpecifications list
    """
    return [{
        "ResourceType": resource_type,
        "Tags": [{"Key": k, "Value": v} for k, v in tags.items()],
    }]


def parse_user_tags(tag_strings: List[str]) -> Dict[str, str]:
    """
    Parse user-provided tag strings in format "key=value".

    Args:
        tag_strings: List of tag strings in "key=value" format

    Returns:
        Dictionary of parsed tags

    Raises:
        ValueError: If tag string format is invalid
    """
    tags = {}

    for tag_str in tag_strings:
        if not tag_str.strip():
            continue
        if "=" not in tag_str:
            raise ValueError(f"Invalid tag format: {tag_str}. Expected 'key=value'")

        key, value = tag_str.split("=", 1)
        if not key.strip() or not value.strip():
            raise ValueError(f"Invalid tag format: {tag_str}. Key and value must not be empty")

        tags[key.strip()] = value.strip()

    return tags
