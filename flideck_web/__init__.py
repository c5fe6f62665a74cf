"""
FliDeck Web - HTTP and WebSocket surface for the manifest engine
"""

from flideck_core.version import __version__
