from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict

from fastapi import WebSocket


logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks the peers connected to each document and fans out their ops."""

    def __init__(self) -> None:
        # doc -> websocket -> peer label (a remote site id, or the connection id)
        self._doc_peers: Dict[uuid.UUID, Dict[WebSocket, str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, doc_id: uuid.UUID, ws: WebSocket, peer: str | None = None) -> str:
        await ws.accept()
        label = peer or uuid.uuid4().hex
        async with self._lock:
            self._doc_peers.setdefault(doc_id, {})[ws] = label
        logger.info("peer %s joined doc %s", label, doc_id)
        return label

    async def disconnect(self, doc_id: uuid.UUID, ws: WebSocket) -> None:
        async with self._lock:
            peers = self._doc_peers.get(doc_id)
            if peers is None:
                return
            label = peers.pop(ws, None)
            if not peers:
                self._doc_peers.pop(doc_id, None)
        if label:
            logger.info("peer %s left doc %s", label, doc_id)

    def peer_count(self, doc_id: uuid.UUID) -> int:
        return len(self._doc_peers.get(doc_id, {}))

    async def broadcast(self, doc_id: uuid.UUID, message: Dict[str, Any], exclude: WebSocket | None = None) -> None:
        peers = list(self._doc_peers.get(doc_id, {}))
        for ws in peers:
            if ws is exclude:
                continue
            try:
                await ws.send_json(message)
            except Exception:
                logger.warning("dropping unreachable peer on doc %s", doc_id, exc_info=True)
                await self.disconnect(doc_id, ws)


manager = ConnectionManager()
