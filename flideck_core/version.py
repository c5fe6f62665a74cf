"""
FliDeck version, shared by the web server, the CLI and the health endpoint.
"""

__version__ = "0.9.0"


def get_short_banner() -> str:
    """One-line banner used by ``flideckctl --help`` and ``flideck-web``."""
    return f"FliDeck v{__version__}"
