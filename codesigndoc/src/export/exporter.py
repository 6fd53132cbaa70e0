import re
import shutil
from pathlib import Path
from typing import List, Optional, Tuple

from codesigndoc.logger import get_console
from codesigndoc.src.core.errors import ExportCopyError
from codesigndoc.src.core.models import (
    MOBILEPROVISION_EXTENSION,
    PROVISIONPROFILE_EXTENSION,
    BuildTranscript,
    ExportedFile,
    ExportReport,
    ProvisioningProfileDescriptor,
    ResolvedExportSet,
)

# Downstream tooling looks for this exact name
TRANSCRIPT_FILE_NAME = "xcodebuild-output.log"

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9_.-]")


def sanitize_name(name: str) -> str:
    """Strip every character that is not safe in an export file name"""
    return _UNSAFE_CHARS_RE.sub("", name or "")


def export_file_name(descriptor: ProvisioningProfileDescriptor) -> str:
    """Return <uuid>.<sanitized name><extension> for a profile.

    The extension follows the source file, macOS profiles keep
    .provisionprofile and everything else becomes .mobileprovision.
    """
    extension = MOBILEPROVISION_EXTENSION
    if str(descriptor.file_path).endswith(PROVISIONPROFILE_EXTENSION):
        extension = PROVISIONPROFILE_EXTENSION
    return f"{descriptor.uuid}.{sanitize_name(descriptor.name)}{extension}"


class Exporter:
    """Writes the files a build needs for signing into an export directory"""

    def __init__(self, destination_dir: Path):
        self.destination_dir = Path(destination_dir)
        self.console = get_console()

    @property
    def transcript_path(self) -> Path:
        return self.destination_dir / TRANSCRIPT_FILE_NAME

    def write_transcript(self, raw_text: str) -> Path:
        """Save the xcodebuild output, also for failed builds."""
        self.transcript_path.write_text(raw_text, encoding="utf-8")
        return self.transcript_path

    def export_profiles(
        self, resolved: ResolvedExportSet
    ) -> Tuple[List[ExportedFile], List[ExportCopyError]]:
        """Copy every resolved profile, continuing past files that fail."""
        exported: List[ExportedFile] = []
        failures: List[ExportCopyError] = []

        for descriptor in resolved.profiles:
            self.console.print(
                f"   [green]Exporting Provisioning Profile:[/] {descriptor.name}"
            )
            self.console.print(f"                             UUID: {descriptor.uuid}")
            destination = self.destination_dir / export_file_name(descriptor)
            try:
                shutil.copy2(descriptor.file_path, destination)
            except OSError as e:
                failure = ExportCopyError(
                    descriptor.name, descriptor.file_path, destination, e
                )
                self.console.print(f"[red]{failure}[/]")
                failures.append(failure)
                continue
            exported.append(
                ExportedFile(
                    source_path=descriptor.file_path,
                    destination_path=destination,
                    logical_name=descriptor.name,
                )
            )

        return exported, failures

    def export(
        self, resolved: ResolvedExportSet, transcript: Optional[BuildTranscript] = None
    ) -> ExportReport:
        """Write the transcript (if given) and all resolved profiles"""
        report = ExportReport()
        if transcript is not None:
            try:
                report.transcript_path = self.write_transcript(transcript.raw_text)
            except OSError as e:
                report.failures.append(
                    ExportCopyError(TRANSCRIPT_FILE_NAME, None, self.transcript_path, e)
                )

        exported, failures = self.export_profiles(resolved)
        report.exported.extend(exported)
        report.failures.extend(failures)
        return report
