import sys
from pathlib import Path
from typing import Callable, List, Optional

from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table

from codesigndoc.logger import get_console
from codesigndoc.src.core.errors import (
    BuildCancelled,
    ConfigError,
    ExportCopyError,
    ExtractionError,
    ProcessLaunchError,
    SchemeListError,
)
from codesigndoc.src.core.models import (
    BuildRequest,
    BuildTranscript,
    ResolvedExportSet,
    SigningSettings,
)
from codesigndoc.src.export.exporter import Exporter
from codesigndoc.src.keychain.identities import (
    SigningIdentity,
    export_identity_certificate,
    find_identity,
    list_codesigning_identities,
)
from codesigndoc.src.profiles.profile_index import scan_profiles_dir
from codesigndoc.src.profiles.resolver import match_profile_ref, resolve_profiles
from codesigndoc.src.utils.config_loader import get_scan_config
from codesigndoc.src.xcode.build_capture import ArchiveBuilder
from codesigndoc.src.xcode.settings_extractor import extract_signing_settings

console = get_console()


def print_finished_with_error(scanner: str, message: str) -> int:
    """Print a scan failure and return the exit code for it."""
    console.print()
    console.print(f"[bold red]❌ {scanner} scan finished with error:[/] {escape(message)}")
    return 1


def init_export_output_dir(output_dir: Path) -> Path:
    """Create the export directory and return its absolute path."""
    abs_output_dir = Path(output_dir).expanduser().resolve()
    abs_output_dir.mkdir(parents=True, exist_ok=True)
    return abs_output_dir


def ask_for_project_path() -> Path:
    """Ask for the .xcodeproj or .xcworkspace to scan."""
    console.print()
    console.print(
        "Please drag-and-drop your Xcode Project ([green].xcodeproj[/]) "
        "or Workspace ([green].xcworkspace[/]) file,\n"
        "the one you usually open in Xcode, then hit Enter.\n\n"
        "  (Note: if you have a Workspace file you should most likely use that)"
    )
    answer = Prompt.ask("Project path")
    # Drag-and-drop in Terminal escapes spaces and may add quotes
    return Path(answer.strip().strip("'\"").replace("\\ ", " "))


def select_scheme(builder: ArchiveBuilder, project_path: Path) -> str:
    """Let the user pick one of the project's schemes."""
    console.print()
    with console.status("[bold blue]🔦  Scanning Schemes ..."):
        schemes = builder.list_schemes(project_path)
    if len(schemes) == 1:
        console.print(f"Using the only Scheme: [cyan]{escape(schemes[0])}[/]")
        return schemes[0]

    for idx, scheme in enumerate(schemes, start=1):
        console.print(f"  [cyan]{idx}.[/] {escape(scheme)}")
    choice = Prompt.ask(
        "Select the Scheme you usually use in Xcode",
        choices=[str(i) for i in range(1, len(schemes) + 1)],
    )
    return schemes[int(choice) - 1]


def save_transcript(exporter: Exporter, raw_text: str, failed: bool) -> Optional[Path]:
    """Write the xcodebuild output, pointing at it if the build failed."""
    log_path = exporter.transcript_path
    console.print(f"  💡  [yellow]Saving xcodebuild output into file:[/] {log_path}")
    try:
        exporter.write_transcript(raw_text)
    except OSError as e:
        console.print(f"[red]Failed to save xcodebuild output into file ({log_path}), error: {escape(str(e))}[/]")
        return None

    if failed:
        console.print(
            f"[yellow]Please check the logfile ({log_path}) to see what caused the error[/]"
        )
    return log_path


def print_archive_hint(request: BuildRequest) -> None:
    console.print("[red]and make sure that you can Archive this project from Xcode![/]")
    console.print()
    console.print(f"Open the project: {escape(str(request.project_path))}")
    console.print(f"and Archive, using the Scheme: {escape(request.scheme)}")
    console.print()


def print_signing_settings(settings: SigningSettings, resolved: ResolvedExportSet, descriptors) -> None:
    """Print the signing identity, team and per-target profile status."""
    console.print()
    console.print(f"[cyan]Team:[/] {escape(settings.team_identifier or '-')}")
    console.print(f"[cyan]Signing Identity:[/] {escape(settings.signing_identity_name or '-')}")

    table = Table(title="Provisioning Profiles")
    table.add_column("Target")
    table.add_column("Profile")
    table.add_column("Status")

    unmatched = set(resolved.unmatched_refs)
    ambiguous = set(resolved.ambiguous_refs)
    for ref in settings.per_target_profiles:
        if ref in unmatched:
            status = "[red]missing[/]"
        elif ref in ambiguous:
            status = "[yellow]ambiguous[/]"
        else:
            names = ", ".join(escape(d.name) for d in match_profile_ref(ref, descriptors))
            status = f"[green]found[/] ({names})"
        table.add_row(escape(ref.target_name or "-"), escape(ref.profile_identifier), status)

    console.print(table)


def export_signing_identity(
    settings: SigningSettings,
    export_dir: Path,
    identity_source: Callable[[], List[SigningIdentity]],
) -> Optional[ExportCopyError]:
    """Export the certificate of the signing identity the build used."""
    if not settings.signing_identity_name:
        return None

    identity = find_identity(settings.signing_identity_name, identity_source())
    if identity is None:
        console.print(
            f"[yellow]Warning: signing identity not found in the keychain:[/] "
            f"{escape(settings.signing_identity_name)}"
        )
        return None

    console.print(f"   [green]Exporting Signing Certificate:[/] {escape(identity.name)}")
    try:
        export_identity_certificate(identity, export_dir)
    except ExportCopyError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        return e
    return None


def scan_xcode_project(
    request: BuildRequest,
    export_dir: Path,
    builder: Optional[ArchiveBuilder] = None,
    profiles_dir: Optional[Path] = None,
    timeout: Optional[float] = None,
    strict: bool = False,
    export_identity: bool = True,
    identity_source: Callable[[], List[SigningIdentity]] = list_codesigning_identities,
) -> int:
    """Archive the project, resolve its signing files and export them.

    Returns the process exit code.
    """
    builder = builder or ArchiveBuilder()
    exporter = Exporter(export_dir)

    console.print()
    console.print("🔦  Running an Xcode Archive, to get all the required code signing settings...")
    try:
        with console.status("[bold blue]Archiving...") as status:
            transcript: BuildTranscript = builder.run_archive(
                request,
                timeout=timeout,
                on_line=lambda line: status.update(f"[bold blue]Archiving...[/] [dim]{escape(line[:80])}"),
            )
    except ProcessLaunchError as e:
        return print_finished_with_error("Xcode", str(e))
    except BuildCancelled as e:
        if e.transcript is not None:
            save_transcript(exporter, e.transcript.raw_text, failed=True)
        return print_finished_with_error("Xcode", str(e))

    save_transcript(exporter, transcript.raw_text, failed=not transcript.succeeded)

    try:
        settings = extract_signing_settings(transcript)
    except ExtractionError as e:
        print_archive_hint(request)
        return print_finished_with_error(
            "Xcode", f"Failed to detect code signing settings: {e}"
        )

    scan = scan_profiles_dir(profiles_dir)
    for warning in scan.warnings:
        console.print(f"[yellow]Warning: skipped {escape(str(warning.path))}: {escape(warning.reason)}[/]")

    resolved = resolve_profiles(settings, scan.descriptors)
    print_signing_settings(settings, resolved, scan.descriptors)

    for descriptor in resolved.profiles:
        if descriptor.is_expired():
            console.print(
                f"[yellow]Warning: provisioning profile expired:[/] {escape(descriptor.name)} ({escape(descriptor.uuid)})"
            )
    for ref in resolved.ambiguous_refs:
        console.print(
            f"[yellow]Warning: more than one profile is named {escape(repr(ref.profile_identifier))}, "
            "exporting all of them[/]"
        )

    if resolved.unmatched_refs:
        console.print("\n[yellow]No local provisioning profile found for:[/]")
        for ref in resolved.unmatched_refs:
            console.print(f"  • {escape(ref.target_name or '-')}: {escape(ref.profile_identifier)}")
        if strict:
            return print_finished_with_error(
                "Xcode", f"{len(resolved.unmatched_refs)} provisioning profile(s) missing"
            )

    console.print()
    report = exporter.export(resolved)
    failures = report.failures

    if export_identity:
        identity_failure = export_signing_identity(settings, exporter.destination_dir, identity_source)
        if identity_failure is not None:
            failures.append(identity_failure)

    if failures:
        console.print("\n[red]Failed exports:[/]")
        for failure in failures:
            console.print(f"  • {escape(failure.logical_name)}: {escape(str(failure.cause))}")
        return print_finished_with_error("Xcode", f"{len(failures)} file(s) could not be exported")

    console.print()
    console.print(f"[bold green]✅ Exports finished[/] You can find the exported files in: {exporter.destination_dir}")
    return 0


def main(parsed_args) -> int:
    """Prepare the scan from the CLI arguments, asking for anything missing."""
    try:
        config = get_scan_config()
    except ConfigError as e:
        return print_finished_with_error("Xcode", str(e))

    try:
        export_dir = init_export_output_dir(parsed_args.output_dir or config.export_dir)
    except OSError as e:
        return print_finished_with_error("Xcode", f"Failed to prepare Export directory: {e}")

    builder = ArchiveBuilder(config.xcodebuild)

    project_path = parsed_args.project_path
    if project_path is None:
        if not sys.stdin.isatty():
            return print_finished_with_error("Xcode", "No project given, use --file")
        project_path = ask_for_project_path()

    scheme = parsed_args.scheme
    if not scheme:
        if not sys.stdin.isatty():
            return print_finished_with_error("Xcode", "No scheme given, use --scheme")
        try:
            scheme = select_scheme(builder, project_path)
        except (SchemeListError, ProcessLaunchError) as e:
            return print_finished_with_error("Xcode", f"Failed to scan Schemes: {e}")

    try:
        request = BuildRequest(project_path, scheme)
    except ValueError as e:
        return print_finished_with_error("Xcode", str(e))

    return scan_xcode_project(
        request,
        export_dir,
        builder=builder,
        profiles_dir=parsed_args.profiles_dir or config.profiles_dir,
        timeout=parsed_args.timeout or config.build_timeout,
        strict=parsed_args.strict,
        export_identity=parsed_args.export_identity,
    )


def run_xcode_scan_command(args):
    """Entry point for the scan xcode command from CLI"""
    return main(parsed_args=args)
