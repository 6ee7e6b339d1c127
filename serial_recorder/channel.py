"""Multi-producer, single-consumer channel that ends once every sender closes."""

import logging
import queue
import threading

logger = logging.getLogger(__name__)

_END = object()


class Sender:
    """Producer handle. Closing the last open handle ends the stream."""

    def __init__(self, channel: "FanInChannel"):
        self._channel = channel
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, item) -> bool:
        """Enqueue item. Returns False if this handle or the channel is closed."""
        if self._closed:
            return False
        return self._channel._put(item)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._channel._release_sender()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class FanInChannel:
    """Unbounded FIFO merging items from many Sender handles.

    Items from one sender keep their order; items from different senders
    interleave in arrival order. The end-of-stream marker is queued only
    after the last sender closes, so every item sent before that is
    received first.
    """

    def __init__(self):
        self._queue: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._open_senders = 0
        self._closed = False
        self._finished = False

    @property
    def open_senders(self) -> int:
        with self._lock:
            return self._open_senders

    @property
    def closed(self) -> bool:
        """True once no producer can add more items."""
        with self._lock:
            return self._closed

    def sender(self) -> Sender:
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot create a sender on a closed channel")
            self._open_senders += 1
        return Sender(self)

    def _put(self, item) -> bool:
        # The lock keeps a send from landing behind the end marker.
        with self._lock:
            if self._closed:
                return False
            self._queue.put(item)
        return True

    def _release_sender(self):
        with self._lock:
            self._open_senders -= 1
            if self._open_senders > 0 or self._closed:
                return
            self._closed = True
            self._queue.put(_END)
        logger.debug("All senders closed, channel draining")

    def close(self):
        """Force end-of-stream. Later sends are dropped."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_END)
        logger.warning("Channel force-closed with %d sender(s) still open",
                       self._open_senders)

    def receive(self, timeout: float | None = None):
        """Next item, or None at end-of-stream. Raises queue.Empty on timeout."""
        if self._finished:
            return None
        item = self._queue.get(timeout=timeout)
        if item is _END:
            self._finished = True
            return None
        return item

    def __iter__(self):
        while True:
            item = self.receive()
            if item is None:
                return
            yield item
