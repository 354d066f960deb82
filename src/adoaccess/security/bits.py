"""Permission bit calculator.

Configuration names permissions by action name; the ACL store wants 32-bit
allow/deny masks. Bits are whatever the namespace says they are: never assume
they are low-order or contiguous.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .namespaces import NamespaceRegistry

UINT32_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class PermissionBits:
    """Allow and deny masks for one ACE."""

    allow: int = 0
    deny: int = 0

    def __post_init__(self) -> None:
        for name in ("allow", "deny"):
            value = getattr(self, name)
            if value < 0 or value > UINT32_MASK:
                raise ValueError(f"{name} mask {value} is outside the unsigned 32-bit range")

    @property
    def overlap(self) -> int:
        """Bits that are both allowed and denied (none in a valid template)."""
        return self.allow & self.deny

    def __or__(self, other: "PermissionBits") -> "PermissionBits":
        return PermissionBits(allow=self.allow | other.allow, deny=self.deny | other.deny)


async def _sum_bits(registry: NamespaceRegistry, namespace_id: str, names: Optional[Iterable[str]]) -> int:
    if not names:
        return 0
    mask = 0
    for name in dict.fromkeys(names):
        action = await registry.get_action(namespace_id, name)
        mask += action.bit
    return mask


async def compute_bits(
    registry: NamespaceRegistry,
    namespace_id: str,
    allow: Optional[Iterable[str]] = None,
    deny: Optional[Iterable[str]] = None,
) -> PermissionBits:
    """Translate allow/deny action names into masks.

    Each list contributes the sum of its distinct bits; a missing list
    contributes 0.

    Raises:
        NamespaceNotFoundError / ActionNotFoundError for unknown names.

    Example::

        bits = await compute_bits(registry, "Git", ["Read", "Write"], [])
        bits  # PermissionBits(allow=3, deny=0)
    """
    return PermissionBits(
        allow=await _sum_bits(registry, namespace_id, allow),
        deny=await _sum_bits(registry, namespace_id, deny),
    )


async def compute_allow_bits(registry: NamespaceRegistry, namespace_id: str, names: Optional[Iterable[str]]) -> int:
    return await _sum_bits(registry, namespace_id, names)


__all__ = ["PermissionBits", "UINT32_MASK", "compute_allow_bits", "compute_bits"]
