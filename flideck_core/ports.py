"""
Ports - collaborator interfaces of the manifest engine

The engine never touches the filesystem, the network or an HTML parser
directly. It goes through the four interfaces below, which are injected into
``PresentationService``. Filesystem implementations live in
``flideck_core.storage``; the BeautifulSoup parser in ``flideck_core.html_parse``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from flideck_core.models import Asset, ParsedDocument

logger = logging.getLogger(__name__)


class ManifestStore(ABC):
    """Loads and saves the raw JSON manifest of a presentation."""

    @abstractmethod
    async def load(self, presentation_id: str) -> Optional[Dict[str, Any]]:
        """Return the raw manifest document, or None when there is none."""
        pass

    @abstractmethod
    async def save(self, presentation_id: str, document: Dict[str, Any]) -> None:
        """Replace the stored manifest atomically."""
        pass


class AssetSource(ABC):
    """Discovers presentations and their HTML assets."""

    @abstractmethod
    async def list_presentations(self) -> List[str]:
        """Ids of every folder that qualifies as a presentation."""
        pass

    @abstractmethod
    async def discover(self, presentation_id: str) -> List[Asset]:
        """Assets of one presentation, in discovery order."""
        pass

    @abstractmethod
    async def read(self, presentation_id: str, filename: str) -> str:
        """Text content of one asset."""
        pass

    @abstractmethod
    async def create_presentation(self, presentation_id: str, index_html: str) -> None:
        """Create the folder and its index document."""
        pass

    def path_for(self, presentation_id: str) -> str:
        return presentation_id


class ChangeNotifier(ABC):
    """Receives one call per committed mutation."""

    @abstractmethod
    async def notify(self, presentation_id: Optional[str], reason: str) -> None:
        pass


class DocumentParser(ABC):
    """Extracts the title and card links of an HTML document."""

    @abstractmethod
    def parse(self, content: str) -> ParsedDocument:
        pass


class LoggingNotifier(ChangeNotifier):
    """Default notifier: records the event and keeps a short history."""

    def __init__(self, history_size: int = 100):
        self.history_size = history_size
        self.events: List[Dict[str, Optional[str]]] = []

    async def notify(self, presentation_id: Optional[str], reason: str) -> None:
        logger.info(f"presentations:updated reason={reason} presentation={presentation_id}")
        self.events.append({"presentationId": presentation_id, "reason": reason})
        if len(self.events) > self.history_size:
            del self.events[: len(self.events) - self.history_size]
