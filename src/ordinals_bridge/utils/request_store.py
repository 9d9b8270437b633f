"""
Persistence of bridge requests for the listener.

Requests are kept in memory and written as one JSON array per chain, at
``<data_dir>/<chain name>/bridge-requests.json``.
"""

import json
import logging
from pathlib import Path
from typing import Iterator, Optional

from ..models import BridgeRequest, RequestStatus

logger = logging.getLogger(__name__)

CHAIN_NAMES: dict[int, str] = {
    11155111: 'sepolia',
    1116: 'core-mainnet',
}


def chain_name_for(chain_id: int) -> str:
    return CHAIN_NAMES.get(chain_id, f"chain-{chain_id}")


class RequestStore:
    """File-backed list of bridge requests for one chain."""

    FILE_NAME = "bridge-requests.json"

    def __init__(self, path: Path, chain_name: str = ""):
        self.path = Path(path)
        self.chain_name = chain_name
        self._requests: list[BridgeRequest] = []

    @classmethod
    def for_chain(cls, data_dir: Path, chain_name: str) -> "RequestStore":
        chain_dir = Path(data_dir) / chain_name
        chain_dir.mkdir(parents=True, exist_ok=True)
        return cls(chain_dir / cls.FILE_NAME, chain_name)

    def load(self) -> None:
        """
        Load requests from disk.

        A missing, empty or unreadable file starts an empty list and
        rewrites the file.
        """
        try:
            if not self.path.exists():
                logger.info(f"No existing requests found for {self.chain_name}")
                self._requests = []
                self.save()
                return

            data = self.path.read_text(encoding="utf-8")
            if not data.strip():
                self._requests = []
                self.save()
                logger.info(f"Initialized empty request file for {self.chain_name}")
                return

            self._requests = [BridgeRequest.from_dict(item) for item in json.loads(data)]
            logger.info(
                f"Loaded {len(self._requests)} bridge requests from {self.chain_name} storage"
            )
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Error loading bridge requests for {self.chain_name}: {e}")
            self._requests = []
            self.save()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps([request.to_dict() for request in self._requests], indent=2),
            encoding="utf-8",
        )
        logger.debug(f"Saved {len(self._requests)} requests to {self.chain_name} storage")

    def add(self, request: BridgeRequest) -> None:
        self._requests.append(request)
        self.save()

    def find(self, inscription_id: str) -> Optional[BridgeRequest]:
        return next(
            (r for r in self._requests if r.inscription_id == inscription_id), None
        )

    def filter(self, status: RequestStatus | None = None) -> list[BridgeRequest]:
        if status is None:
            return list(self._requests)
        return [r for r in self._requests if r.status == status]

    def __iter__(self) -> Iterator[BridgeRequest]:
        return iter(list(self._requests))

    def __len__(self) -> int:
        return len(self._requests)
