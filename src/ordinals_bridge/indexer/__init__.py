"""Event indexer mirroring Bridge and Marketplace logs into a database."""

from .events import EVENT_SPECS
from .processor import EventIndexer
from .store import create_session_factory

__all__ = ["EVENT_SPECS", "EventIndexer", "create_session_factory"]
