from pathlib import Path
from typing import Optional


class CodeSignDocError(Exception):
    """Base class for every error raised by codesigndoc"""


class ConfigError(CodeSignDocError):
    """Configuration file could not be read or holds invalid values"""


class ProcessLaunchError(CodeSignDocError):
    """The build tool could not be started at all, so there is no transcript"""

    def __init__(self, command, cause: Exception):
        self.command = list(command)
        self.cause = cause
        super().__init__(f"Failed to start {self.command[0]}: {cause}")


class BuildCancelled(CodeSignDocError):
    """The build was stopped by a timeout or an explicit cancel request"""

    def __init__(self, reason: str, transcript=None):
        self.reason = reason
        # Partial output, so it can still be written to the log file
        self.transcript = transcript
        super().__init__(f"Build cancelled: {reason}")


class SchemeListError(CodeSignDocError):
    """Listing the schemes of a project failed"""


class ExtractionError(CodeSignDocError):
    """The transcript can not be turned into signing settings"""


class BuildFailed(ExtractionError):
    """The build ran but exited with a non-zero status"""

    def __init__(self, exit_code: Optional[int] = None):
        self.exit_code = exit_code
        super().__init__(f"Archive build failed (exit code: {exit_code})")


class NoSigningSettingsFound(ExtractionError):
    """The build succeeded but printed nothing that looks like signing settings"""

    def __init__(self):
        super().__init__(
            "No code signing settings found in the build output. "
            "Is code signing enabled for this scheme?"
        )


class ProfileDecodeError(CodeSignDocError):
    """A single provisioning profile file could not be decoded"""

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Failed to decode {self.path}: {reason}")


class ExportCopyError(CodeSignDocError):
    """One file of an export run could not be written"""

    def __init__(
        self,
        logical_name: str,
        source_path: Optional[Path],
        destination_path: Path,
        cause: Exception,
    ):
        self.logical_name = logical_name
        self.source_path = source_path
        self.destination_path = destination_path
        self.cause = cause
        super().__init__(
            f"Failed to export {logical_name} (from: {source_path}) "
            f"(to: {destination_path}), error: {cause}"
        )
