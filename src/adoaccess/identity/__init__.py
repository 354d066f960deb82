"""Identity descriptors, group/user resolution and transitive membership."""

from .descriptors import (
    DESCRIPTOR_SEPARATOR,
    EXTERNAL_GROUP_TAG,
    IDENTITY_PREFIX,
    NATIVE_GROUP_TAG,
    SubjectKind,
    decode_descriptor,
    encode_descriptor,
    identity_descriptor,
    subject_kind,
    subject_tag,
)
from .membership import (
    ExternalEdge,
    LeafEdge,
    MembershipEdge,
    MembershipResolver,
    NativeEdge,
    classify_edge,
)
from .resolver import DescriptorResolver, GroupType, qualify_group_name

__all__ = [
    "DESCRIPTOR_SEPARATOR",
    "EXTERNAL_GROUP_TAG",
    "IDENTITY_PREFIX",
    "NATIVE_GROUP_TAG",
    "DescriptorResolver",
    "ExternalEdge",
    "GroupType",
    "LeafEdge",
    "MembershipEdge",
    "MembershipResolver",
    "NativeEdge",
    "SubjectKind",
    "classify_edge",
    "decode_descriptor",
    "encode_descriptor",
    "identity_descriptor",
    "qualify_group_name",
    "subject_kind",
    "subject_tag",
]
