from typing import Any, Dict, List, Optional, Protocol
from datetime import datetime
import logging

from ..engine.models import TraceEntry

logger = logging.getLogger(__name__)


class TraceSink(Protocol):
    async def record(self, execution_id: str, entry: TraceEntry) -> None: ...

    async def finish(self, execution_id: str, status: str) -> None: ...


class TraceBroadcaster:
    """
    Append-only trace channel.

    Keeps every entry per execution so a log viewer can poll with a cursor,
    and pushes each new entry to the WebSockets watching that execution.
    """

    def __init__(self):
        self.entries: Dict[str, List[TraceEntry]] = {}  # execution_id -> entries
        self.websocket_connections: Dict[str, List] = {}  # execution_id -> sockets

    async def record(self, execution_id: str, entry: TraceEntry) -> None:
        self.entries.setdefault(execution_id, []).append(entry)
        await self._broadcast(execution_id, {"type": "log", **self.serialize(entry)})

    async def finish(self, execution_id: str, status: str) -> None:
        await self._broadcast(execution_id, {
            "type": "status",
            "run_id": execution_id,
            "status": status,
        })

    @staticmethod
    def serialize(entry: TraceEntry) -> Dict[str, Any]:
        return entry.model_dump(mode="json", by_alias=True)

    def get_entries(self, execution_id: str, after: Optional[float] = None) -> List[TraceEntry]:
        """Entries for an execution, optionally only those newer than `after` (epoch ms)."""
        entries = self.entries.get(execution_id, [])
        if not after:
            return list(entries)
        cursor = datetime.fromtimestamp(after / 1000)
        return [entry for entry in entries if entry.timestamp > cursor]

    async def _broadcast(self, execution_id: str, payload: Dict[str, Any]) -> None:
        """
        Send a payload to every WebSocket monitoring this execution.
        Disconnected clients are dropped.
        """
        if execution_id not in self.websocket_connections:
            return

        # Copy the list, failed sockets are removed while iterating
        connections = self.websocket_connections[execution_id].copy()
        for websocket in connections:
            try:
                await websocket.send_json(payload)
            except Exception as e:
                logger.warning(f"WebSocket disconnected for execution {execution_id}: {e}")
                self.remove_websocket_connection(execution_id, websocket)

    def add_websocket_connection(self, execution_id: str, websocket) -> None:
        self.websocket_connections.setdefault(execution_id, []).append(websocket)
        logger.info(f"WebSocket connected for execution {execution_id}")

    def remove_websocket_connection(self, execution_id: str, websocket) -> None:
        """Unregister a WebSocket connection when the client disconnects."""
        connections = self.websocket_connections.get(execution_id)
        if connections and websocket in connections:
            connections.remove(websocket)
            logger.info(f"WebSocket disconnected for execution {execution_id}")

            # Drop empty lists so finished executions don't pile up
            if not connections:
                del self.websocket_connections[execution_id]

    def stats(self) -> Dict[str, int]:
        return {
            "traced_executions": len(self.entries),
            "total_logs": sum(len(entries) for entries in self.entries.values()),
            "active_websockets": sum(len(conns) for conns in self.websocket_connections.values()),
        }
