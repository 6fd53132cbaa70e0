from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from codesigndoc.src.core.errors import ExportCopyError

MOBILEPROVISION_EXTENSION = ".mobileprovision"
PROVISIONPROFILE_EXTENSION = ".provisionprofile"
PROFILE_EXTENSIONS = (MOBILEPROVISION_EXTENSION, PROVISIONPROFILE_EXTENSION)


@dataclass(frozen=True)
class BuildRequest:
    """Project (or workspace) and scheme to archive"""

    project_path: Path
    scheme: str

    def __post_init__(self):
        if self.project_path is None or not str(self.project_path).strip():
            raise ValueError("Project path must not be empty")
        if not self.scheme or not self.scheme.strip():
            raise ValueError("Scheme must not be empty")
        object.__setattr__(self, "project_path", Path(self.project_path))

    @property
    def is_workspace(self) -> bool:
        return self.project_path.suffix == ".xcworkspace"


@dataclass(frozen=True)
class BuildTranscript:
    """Complete output of one build invocation"""

    raw_text: str
    succeeded: bool
    exit_code: Optional[int] = None


@dataclass(frozen=True)
class TargetProfileRef:
    """A provisioning profile a target was signed with, as the build reported it"""

    target_name: str  # "" if reported before any target line
    profile_identifier: str  # UUID or profile name


@dataclass(frozen=True)
class SigningSettings:
    team_identifier: Optional[str] = None
    signing_identity_name: Optional[str] = None
    per_target_profiles: Tuple[TargetProfileRef, ...] = ()


@dataclass(frozen=True)
class ProvisioningProfileDescriptor:
    """Parsed contents of one provisioning profile file on disk"""

    file_path: Path
    uuid: str
    name: str
    team_identifier: Optional[str] = None
    expiration_date: Optional[datetime] = None

    @property
    def file_format(self) -> str:
        if str(self.file_path).endswith(PROVISIONPROFILE_EXTENSION):
            return "provisionprofile"
        return "mobileprovision"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiration_date is None:
            return False
        now = now or datetime.now(timezone.utc)
        expiration = self.expiration_date
        # plistlib returns naive datetimes in UTC
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return expiration <= now


@dataclass(frozen=True)
class ProfileDecodeWarning:
    """A profile file skipped during an index scan"""

    path: Path
    reason: str


@dataclass(frozen=True)
class ProfileScan:
    descriptors: Tuple[ProvisioningProfileDescriptor, ...] = ()
    warnings: Tuple[ProfileDecodeWarning, ...] = ()


@dataclass(frozen=True)
class ResolvedExportSet:
    """Profiles to export plus the references that could not be matched"""

    profiles: Tuple[ProvisioningProfileDescriptor, ...] = ()
    unmatched_refs: Tuple[TargetProfileRef, ...] = ()
    # Refs matched by name to more than one profile; all candidates are exported
    ambiguous_refs: Tuple[TargetProfileRef, ...] = ()

    @property
    def has_unmatched(self) -> bool:
        return bool(self.unmatched_refs)


@dataclass(frozen=True)
class ExportedFile:
    source_path: Optional[Path]
    destination_path: Path
    logical_name: str


@dataclass
class ExportReport:
    """Outcome of one export run, successes and per-file failures"""

    exported: List[ExportedFile] = field(default_factory=list)
    failures: List[ExportCopyError] = field(default_factory=list)
    transcript_path: Optional[Path] = None

    @property
    def succeeded(self) -> bool:
        return not self.failures
