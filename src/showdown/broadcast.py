"""
Fan-out of tournament updates to live subscribers (Server-Sent Events).

Every published event carries the full state plus the request id of the
mutation that produced it, so the client that made the change can recognise
its own echo.
"""
import json
import logging
import queue
import threading
from typing import Dict, Optional

logger = logging.getLogger(__name__)

UPDATE_EVENT = 'tournament:updated'
MAX_PENDING = 50


def format_sse(data, event: Optional[str] = None) -> str:
    """Render one SSE frame. Non-string data is JSON encoded."""
    if not isinstance(data, str):
        data = json.dumps(data)
    frame = ''
    if event:
        frame += f'event: {event}\n'
    for line in data.splitlines() or ['']:
        frame += f'data: {line}\n'
    return frame + '\n'


def make_event(tournament_id: str, state: Dict, origin: Optional[str] = None) -> Dict:
    return {'tournamentId': tournament_id, 'origin': origin, 'state': state}


class Broadcaster:
    def __init__(self):
        self._subscribers = []
        self._lock = threading.Lock()

    def subscribe(self) -> queue.Queue:
        q = queue.Queue(maxsize=MAX_PENDING)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue):
        with self._lock:
            if q in self._subscribers:
                self._subscribers.remove(q)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, tournament_id: str, state: Dict, origin: Optional[str] = None) -> int:
        """Queue an update for every subscriber. Returns how many received it.

        A subscriber whose queue is full loses its oldest pending update
        instead of this one.
        """
        event = make_event(tournament_id, state, origin)
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for q in subscribers:
            if self._offer(q, event):
                delivered += 1
        return delivered

    @staticmethod
    def _offer(q: queue.Queue, event: Dict) -> bool:
        try:
            q.put_nowait(event)
            return True
        except queue.Full:
            logger.warning('Live subscriber is behind, dropping its oldest update')
        try:
            q.get_nowait()
        except queue.Empty:
            # Drained by its reader in the meantime
            pass
        try:
            q.put_nowait(event)
        except queue.Full:
            logger.warning('Live subscriber queue still full, update skipped')
            return False
        return True
