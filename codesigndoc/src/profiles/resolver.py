import re
from typing import Dict, List, Sequence

from codesigndoc.src.core.models import (
    ProvisioningProfileDescriptor,
    ResolvedExportSet,
    SigningSettings,
    TargetProfileRef,
)

_UUID_SHAPE_RE = re.compile(r"^[0-9A-Fa-f]+(?:-[0-9A-Fa-f]+)+$")


def is_uuid_shaped(identifier: str) -> bool:
    """Check if an identifier looks like a profile UUID (hex groups joined by dashes)"""
    return bool(_UUID_SHAPE_RE.match(identifier or ""))


def match_profile_ref(
    ref: TargetProfileRef, descriptors: Sequence[ProvisioningProfileDescriptor]
) -> List[ProvisioningProfileDescriptor]:
    """Return every descriptor the reference points at.

    UUIDs are compared case-insensitively. Names are only used when the
    identifier is not UUID shaped and must match exactly, a wrong profile is
    worse than no profile.
    """
    identifier = ref.profile_identifier
    by_uuid = [d for d in descriptors if d.uuid.lower() == identifier.lower()]
    if by_uuid or is_uuid_shaped(identifier):
        return by_uuid
    return [d for d in descriptors if d.name == identifier]


def resolve_profiles(
    settings: SigningSettings, descriptors: Sequence[ProvisioningProfileDescriptor]
) -> ResolvedExportSet:
    """Cross-reference the build's profile references with the local profiles.

    Profiles shared between targets are exported once. References without a
    local profile end up in unmatched_refs, whether that blocks the export is
    up to the caller.
    """
    matched: Dict[str, ProvisioningProfileDescriptor] = {}
    unmatched: List[TargetProfileRef] = []
    ambiguous: List[TargetProfileRef] = []

    for ref in settings.per_target_profiles:
        candidates = match_profile_ref(ref, descriptors)

        # Several profiles share the name, prefer the ones of the build's team
        if len(candidates) > 1 and settings.team_identifier:
            same_team = [
                d for d in candidates if d.team_identifier == settings.team_identifier
            ]
            candidates = same_team or candidates
        if len(candidates) > 1:
            ambiguous.append(ref)

        if not candidates:
            unmatched.append(ref)
            continue

        for descriptor in candidates:
            matched.setdefault(descriptor.uuid.lower(), descriptor)

    return ResolvedExportSet(
        profiles=tuple(matched.values()),
        unmatched_refs=tuple(unmatched),
        ambiguous_refs=tuple(ambiguous),
    )
