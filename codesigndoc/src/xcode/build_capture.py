import json
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from rich.markup import escape

from codesigndoc.logger import get_console
from codesigndoc.src.core.errors import (
    BuildCancelled,
    ProcessLaunchError,
    SchemeListError,
)
from codesigndoc.src.core.models import BuildRequest, BuildTranscript

POLL_INTERVAL = 0.2  # seconds between cancel/timeout checks
TERMINATE_GRACE_PERIOD = 5  # seconds before a terminated build gets killed


def _project_flag(project_path: Path) -> str:
    return "-workspace" if Path(project_path).suffix == ".xcworkspace" else "-project"


class ArchiveBuilder:
    """Runs xcodebuild archives and captures their complete output"""

    def __init__(self, tool: Optional[Sequence[str]] = None):
        # Command prefix used to invoke xcodebuild, e.g. ("xcodebuild",)
        self.tool = tuple(tool or ("xcodebuild",))
        self.console = get_console()

    def build_command(self, request: BuildRequest, archive_path: Path) -> List[str]:
        """Return the argument list for an archive build of the request"""
        return [
            *self.tool,
            _project_flag(request.project_path),
            str(request.project_path),
            "-scheme",
            request.scheme,
            "clean",
            "archive",
            "-archivePath",
            str(archive_path),
        ]

    def run_archive(
        self,
        request: BuildRequest,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        on_line: Optional[Callable[[str], None]] = None,
    ) -> BuildTranscript:
        """Archive the scheme and return the full transcript.

        Args:
            request: Project and scheme to archive
            timeout: Optional number of seconds after which the build is stopped.
                There is no timeout by default, archives can take a long time.
            cancel_event: Optional event, setting it stops the build
            on_line: Optional callback invoked with every output line

        Returns:
            BuildTranscript: succeeded is False if xcodebuild exited non-zero

        Raises:
            ProcessLaunchError: xcodebuild could not be started
            BuildCancelled: the build was stopped, holds the partial transcript
        """
        # The archive itself is not needed, only the log
        with tempfile.TemporaryDirectory(prefix="codesigndoc-") as tmp_dir:
            archive_path = Path(tmp_dir) / f"{request.scheme}.xcarchive"
            command = self.build_command(request, archive_path)
            return self._run(command, timeout, cancel_event, on_line)

    def _run(
        self,
        command: List[str],
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
        on_line: Optional[Callable[[str], None]],
    ) -> BuildTranscript:
        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise ProcessLaunchError(command, e) from e

        lines: List[str] = []
        reader = threading.Thread(
            target=self._read_output,
            args=(process.stdout, lines, on_line),
            daemon=True,
        )
        reader.start()

        deadline = time.monotonic() + timeout if timeout else None
        cancel_reason = None
        while True:
            try:
                process.wait(timeout=POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                pass
            except KeyboardInterrupt:
                cancel_reason = "interrupted"

            if cancel_reason is None:
                if cancel_event is not None and cancel_event.is_set():
                    cancel_reason = "cancelled"
                elif deadline is not None and time.monotonic() >= deadline:
                    cancel_reason = f"timed out after {timeout} seconds"

            if cancel_reason:
                self._stop(process)
                break

        reader.join(timeout=TERMINATE_GRACE_PERIOD if cancel_reason else None)
        raw_text = "".join(lines)

        if cancel_reason:
            raise BuildCancelled(
                cancel_reason,
                BuildTranscript(raw_text, succeeded=False, exit_code=process.returncode),
            )

        return BuildTranscript(
            raw_text, succeeded=process.returncode == 0, exit_code=process.returncode
        )

    def _read_output(self, stream, lines: List[str], on_line) -> None:
        # The pipe must be drained to the end whatever the callback does
        for line in iter(stream.readline, ""):
            lines.append(line)
            if on_line is None:
                continue
            try:
                on_line(line.rstrip("\n"))
            except Exception as e:
                self.console.print(f"[yellow]Warning: progress display failed, hiding it: {escape(str(e))}[/]")
                on_line = None
        stream.close()

    def _stop(self, process: subprocess.Popen) -> None:
        if process.poll() is not None:
            return
        self.console.print("[yellow]Stopping xcodebuild...[/]")
        try:
            process.terminate()
            process.wait(timeout=TERMINATE_GRACE_PERIOD)
        except subprocess.TimeoutExpired:
            self.console.print("[red]Force killing xcodebuild...[/]")
            process.kill()
            process.wait()

    def list_schemes(self, project_path: Path) -> List[str]:
        """List the schemes of a project or workspace using xcodebuild -list"""
        command = [*self.tool, "-list", "-json", _project_flag(project_path), str(project_path)]
        try:
            result = subprocess.run(command, capture_output=True, text=True)
        except OSError as e:
            raise ProcessLaunchError(command, e) from e

        if result.returncode != 0:
            raise SchemeListError(
                f"xcodebuild -list failed with status {result.returncode}\n"
                f"Output: {result.stdout}\nError: {result.stderr}"
            )

        # xcodebuild may print warnings before the JSON document
        output = result.stdout
        start = output.find("{")
        try:
            data = json.loads(output[start:] if start >= 0 else output)
        except json.JSONDecodeError as e:
            raise SchemeListError(f"Could not parse xcodebuild -list output: {e}") from e

        container = data.get("workspace") or data.get("project") or {}
        schemes = container.get("schemes", [])
        if not schemes:
            raise SchemeListError(f"No schemes found in {project_path}")
        return list(schemes)
