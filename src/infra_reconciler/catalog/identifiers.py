"""Comparison rules for native resource identifiers."""

from typing import Optional


def same_arm_id(left: Optional[str], right: Optional[str]) -> bool:
    """ARM resource IDs compare case-insensitively."""
    if left is None or right is None:
        return False
    return left.rstrip('/').lower() == right.rstrip('/').lower()


def is_secret_uri(native_id: str) -> bool:
    """Key Vault data-plane secret URI, e.g. ``https://kv.vault.azure.net/secrets/name/version``."""
    return native_id.lower().startswith('https://') and '/secrets/' in native_id.lower()


def versionless_secret_uri(native_id: str) -> str:
    """Lower-cased Key Vault secret URI without its version segment."""
    base, _, rest = native_id.rstrip('/').partition('/secrets/')
    name = rest.split('/', 1)[0]
    return f"{base}/secrets/{name}".lower()


def ids_match(left: Optional[str], right: Optional[str]) -> bool:
    """Compare native IDs.

    ARM resource IDs compare case-insensitively. Key Vault secret URIs
    compare without their version, since every value rotation mints a new
    one. Everything else compares exactly.
    """
    if left is None or right is None:
        return False
    if left.lower().startswith('/subscriptions/') or right.lower().startswith('/subscriptions/'):
        return same_arm_id(left, right)
    if is_secret_uri(left) and is_secret_uri(right):
        return versionless_secret_uri(left) == versionless_secret_uri(right)
    return left == right
