import argparse
import sys
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich.theme import Theme
from rich_argparse import RichHelpFormatter
from codesigndoc.arguments import add_xcode_scan_arguments
from codesigndoc.src.constants.cli_constants import (
    __version__,
    get_banner_text,
    APP_DESCRIPTION,
)


class CodeSignDocHelpFormatter(RichHelpFormatter):
    """Help formatter with the codesigndoc color theme."""

    def __init__(self, prog):
        super().__init__(prog, max_help_position=30, width=100)
        self.console = Console(
            theme=Theme(
                {
                    "command": "bold cyan",
                    "argument": "green",
                    "option": "yellow",
                    "version": "blue",
                    "title": "bold magenta",
                }
            )
        )

    def start_section(self, heading):
        heading_text = Text(heading, style="title")
        super().start_section(str(heading_text))


def display_banner():
    """Display the codesigndoc banner."""
    console = Console()
    banner = get_banner_text()

    version_info = Text(f"v{__version__}", style="blue")
    tagline = Text(APP_DESCRIPTION, style="italic")

    panel = Panel.fit(
        Text.assemble(banner, "\n", tagline, "\n", version_info),
        border_style="green",
        padding=(1, 2),
    )
    console.print(panel)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codesigndoc",
        description=f"codesigndoc: {APP_DESCRIPTION}",
        formatter_class=CodeSignDocHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"codesigndoc {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command")

    scan_parser = subparsers.add_parser(
        "scan",
        help="Scan a project for its code signing files",
        formatter_class=CodeSignDocHelpFormatter,
        description="Scan a project and export the code signing files it needs.",
    )
    scan_subparsers = scan_parser.add_subparsers(dest="scanner")

    xcode_parser = scan_subparsers.add_parser(
        "xcode",
        help="Xcode project scanner",
        formatter_class=CodeSignDocHelpFormatter,
        description="Run an Xcode Archive and export the provisioning profiles and "
        "signing certificate it used.",
    )
    add_xcode_scan_arguments(xcode_parser)
    return parser


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv or "-h" in argv or "--help" in argv:
        display_banner()

    # Allow CODESIGNDOC_* settings in a .env file
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "scan" and args.scanner == "xcode":
        from codesigndoc.commands.scan import run_xcode_scan_command

        return run_xcode_scan_command(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
