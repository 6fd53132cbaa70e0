from rich.text import Text

__version__ = "0.1.0"

APP_DESCRIPTION = "Find and export the code signing files your Xcode archive needs"


def get_banner_text() -> Text:
    """Return the styled banner shown above the help text."""
    banner = Text()
    banner.append("codesign", style="bold cyan")
    banner.append("doc", style="bold magenta")
    return banner
