"""Subject descriptor parsing and decoding.

A descriptor is ``{tag}.{payload}`` where ``tag`` names the origin system of
the subject (``vssgp`` native group, ``aadgp`` external directory group,
``aad`` directory user, ...) and ``payload`` is the unpadded base64 of the
subject's security identifier (SID).

The ACL store does not accept descriptors; it wants the identity form
``Microsoft.TeamFoundation.Identity;{SID}``. :func:`identity_descriptor`
produces it.
"""

from __future__ import annotations

import base64
import binascii
from enum import Enum

from ..exceptions import MalformedDescriptorError

DESCRIPTOR_SEPARATOR = "."
IDENTITY_PREFIX = "Microsoft.TeamFoundation.Identity;"

NATIVE_GROUP_TAG = "vssgp"
EXTERNAL_GROUP_TAG = "aadgp"


class SubjectKind(str, Enum):
    """Which backend owns a subject, derived from its descriptor tag."""

    NATIVE_GROUP = "native_group"
    EXTERNAL_GROUP = "external_group"
    USER = "user"


def subject_tag(descriptor: str) -> str:
    """Return the origin-system tag (characters before the first separator)."""
    cut = descriptor.find(DESCRIPTOR_SEPARATOR)
    if cut <= 0:
        raise MalformedDescriptorError(
            f"Descriptor '{descriptor}' has no origin tag.",
            descriptor=descriptor,
        )
    return descriptor[:cut]


def subject_kind(descriptor: str) -> SubjectKind:
    """Classify a descriptor by its tag.

    Anything that is not a group tag (``aad``, ``msa``, ``svc``, ``bnd`` ...)
    is a leaf principal.
    """
    tag = subject_tag(descriptor).lower()
    if tag == NATIVE_GROUP_TAG:
        return SubjectKind.NATIVE_GROUP
    if tag == EXTERNAL_GROUP_TAG:
        return SubjectKind.EXTERNAL_GROUP
    return SubjectKind.USER


def decode_descriptor(descriptor: str) -> str:
    """Decode a descriptor into the security identifier it wraps.

    Strips everything up to and including the first separator, then
    base64-decodes the remainder. Both the standard and the url-safe alphabet
    are accepted and missing padding is restored.

    Raises:
        MalformedDescriptorError: no separator, empty payload, invalid
            base64 or a payload that is not UTF-8 text.
    """
    subject_tag(descriptor)
    payload = descriptor.split(DESCRIPTOR_SEPARATOR, 1)[1]
    if not payload:
        raise MalformedDescriptorError(
            f"Descriptor '{descriptor}' has an empty payload.",
            descriptor=descriptor,
        )

    normalized = payload.replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    try:
        raw = base64.b64decode(normalized, validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        # UnicodeDecodeError is a ValueError
        raise MalformedDescriptorError(
            f"Descriptor '{descriptor}' cannot be decoded: {exc}",
            descriptor=descriptor,
        ) from exc


def encode_descriptor(sid: str, tag: str) -> str:
    """Build a descriptor for ``sid`` under the given origin tag."""
    if not tag or DESCRIPTOR_SEPARATOR in tag:
        raise ValueError(f"Invalid descriptor tag: {tag!r}")
    payload = base64.b64encode(sid.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{tag}{DESCRIPTOR_SEPARATOR}{payload}"


def identity_descriptor(descriptor: str) -> str:
    """Translate a subject descriptor into the ACL store's identity form."""
    return IDENTITY_PREFIX + decode_descriptor(descriptor)


__all__ = [
    "DESCRIPTOR_SEPARATOR",
    "EXTERNAL_GROUP_TAG",
    "IDENTITY_PREFIX",
    "NATIVE_GROUP_TAG",
    "SubjectKind",
    "decode_descriptor",
    "encode_descriptor",
    "identity_descriptor",
    "subject_kind",
    "subject_tag",
]
