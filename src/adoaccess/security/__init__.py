"""Security namespaces, permission bits and ACE writes."""

from .bits import UINT32_MASK, PermissionBits, compute_allow_bits, compute_bits
from .namespaces import NamespaceCatalog, NamespaceRegistry
from .writer import AceWriter, WriteOperation, WriteResult

__all__ = [
    "UINT32_MASK",
    "AceWriter",
    "NamespaceCatalog",
    "NamespaceRegistry",
    "PermissionBits",
    "WriteOperation",
    "WriteResult",
    "compute_allow_bits",
    "compute_bits",
]
