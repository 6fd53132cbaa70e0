import plistlib
import re
from xml.parsers.expat import ExpatError
from pathlib import Path
from typing import Iterable, List, Optional

from asn1crypto.cms import ContentInfo

from codesigndoc.logger import get_console
from codesigndoc.src.core.errors import ProfileDecodeError
from codesigndoc.src.core.models import (
    PROFILE_EXTENSIONS,
    ProfileDecodeWarning,
    ProfileScan,
    ProvisioningProfileDescriptor,
)

# The UUID ends up in export file names, so no path characters
_UUID_RE = re.compile(r"^[A-Za-z0-9-]+$")


def default_profiles_dir() -> Path:
    """Return the directory Xcode installs provisioning profiles into."""
    return Path.home() / "Library" / "MobileDevice" / "Provisioning Profiles"


def discover_profile_files(root: Path) -> List[Path]:
    """List the provisioning profile files directly inside root, sorted by name."""
    root = Path(root)
    if not root.is_dir():
        return []
    return sorted(
        path
        for path in root.iterdir()
        if path.is_file() and path.suffix in PROFILE_EXTENSIONS
    )


def dump_prov(prov_file: Path) -> dict:
    """Read a provisioning profile without using macOS security command"""
    with open(prov_file, "rb") as f:
        content_info = ContentInfo.load(f.read())
    signed_data = content_info["content"]
    # The plist is the encapsulated content of the CMS signed data
    plist_data = signed_data["encap_content_info"]["content"].native
    return plistlib.loads(plist_data)


def _team_identifier(data: dict) -> Optional[str]:
    team_ids = data.get("TeamIdentifier")
    if isinstance(team_ids, list) and team_ids:
        return str(team_ids[0])
    team_id = data.get("Entitlements", {}).get("com.apple.developer.team-identifier")
    return team_id if isinstance(team_id, str) and team_id else None


def decode_profile(path: Path) -> ProvisioningProfileDescriptor:
    """Decode one profile file into a descriptor.

    Raises:
        ProfileDecodeError: the file is unreadable, not CMS or has no UUID
    """
    path = Path(path)
    try:
        data = dump_prov(path)
    except OSError as e:
        raise ProfileDecodeError(path, f"could not read file: {e}") from e
    except (ValueError, TypeError, KeyError, AttributeError, ExpatError) as e:
        raise ProfileDecodeError(path, f"invalid profile data: {e}") from e

    if not isinstance(data, dict):
        raise ProfileDecodeError(path, "embedded plist is not a dictionary")

    uuid = data.get("UUID")
    if not isinstance(uuid, str) or not uuid:
        raise ProfileDecodeError(path, "profile has no UUID")
    if not _UUID_RE.match(uuid):
        raise ProfileDecodeError(path, f"invalid UUID {uuid!r}")

    return ProvisioningProfileDescriptor(
        file_path=path,
        uuid=uuid,
        name=str(data.get("Name", "")),
        team_identifier=_team_identifier(data),
        expiration_date=data.get("ExpirationDate"),
    )


def scan_profiles(paths: Iterable[Path]) -> ProfileScan:
    """Decode every candidate path, keeping the first profile seen for each UUID.

    Files that fail to decode and later duplicates of a UUID are skipped and
    reported as warnings, the scan itself never fails because of them.
    """
    descriptors: List[ProvisioningProfileDescriptor] = []
    warnings: List[ProfileDecodeWarning] = []
    seen = {}

    for path in paths:
        try:
            descriptor = decode_profile(path)
        except ProfileDecodeError as e:
            warnings.append(ProfileDecodeWarning(e.path, e.reason))
            continue

        first = seen.get(descriptor.uuid.lower())
        if first is not None:
            warnings.append(
                ProfileDecodeWarning(
                    descriptor.file_path,
                    f"duplicate UUID {descriptor.uuid}, already provided by {first.file_path}",
                )
            )
            continue

        seen[descriptor.uuid.lower()] = descriptor
        descriptors.append(descriptor)

    return ProfileScan(descriptors=tuple(descriptors), warnings=tuple(warnings))


def scan_profiles_dir(root: Optional[Path] = None) -> ProfileScan:
    """Scan a profile directory, the Xcode default one if root is None."""
    root = Path(root) if root else default_profiles_dir()
    paths = discover_profile_files(root)
    get_console().log(f"[blue]Found {len(paths)} provisioning profile file(s) in:[/] {root}")
    return scan_profiles(paths)
