from pathlib import Path


def add_xcode_scan_arguments(parser):
    """Add all Xcode scan arguments to an existing parser."""
    parser.add_argument(
        "--file",
        dest="project_path",
        type=Path,
        help="Xcode Project/Workspace file path [default: ask]",
    )

    parser.add_argument(
        "--scheme",
        type=str,
        help="Xcode Scheme [default: ask]",
    )

    parser.add_argument(
        "--output",
        "-o",
        dest="output_dir",
        type=Path,
        help="Directory to export the code signing files into [default: ./codesigndoc_exports]",
    )

    parser.add_argument(
        "--profiles-dir",
        type=Path,
        help="Directory to look for provisioning profiles in [default: Xcode's profile directory]",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        help="Stop the archive build after this many seconds [default: no timeout]",
    )

    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail without exporting if a required profile is missing locally [default: disabled]",
    )

    parser.add_argument(
        "--no-identity",
        action="store_false",
        dest="export_identity",
        help="Do not look up and export the signing certificate [default: enabled]",
    )
