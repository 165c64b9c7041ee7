"""
ID generation utilities for A3S Context.

- Nodes: UUIDv5 derived from the canonical pathway text, so a pathway always
  maps to the same identifier within and across stores
- Sessions: ses_xxx
"""

from uuid import NAMESPACE_URL, uuid4, uuid5


def generate_node_id(pathway: str) -> str:
    """
    Derive the node ID for a pathway.

    Args:
        pathway: Canonical pathway text (a3s://namespace/...)

    Returns:
        UUID string, stable for the same pathway
    """
    return str(uuid5(NAMESPACE_URL, pathway))


def generate_session_id() -> str:
    """
    Generate unique Session ID.

    Returns:
        ID in format "ses_xxx" where xxx is 12 hex characters
    """
    return f"ses_{uuid4().hex[:12]}"
