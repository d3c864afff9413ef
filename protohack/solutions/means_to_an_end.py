import bisect
import logging
import struct

from protohack.core.models.delimiter import DelimiterPolicy, ExactBytes
from protohack.core.models.errors import RequestError
from protohack.core.ports.handler import ProtocolHandler


# 1-byte type followed by two big-endian signed 32-bit integers.
MESSAGE = struct.Struct("!cii")
MEAN = struct.Struct("!i")

INSERT = b"I"
QUERY = b"Q"


class PriceHistory:
    """Timestamped prices of one session, kept sorted by timestamp."""

    def __init__(self) -> None:
        self._timestamps: list[int] = []
        self._prices: list[int] = []

    def __len__(self) -> int:
        return len(self._timestamps)

    def insert(self, timestamp: int, price: int) -> None:
        i = bisect.bisect_right(self._timestamps, timestamp)
        self._timestamps.insert(i, timestamp)
        self._prices.insert(i, price)

    def mean(self, mintime: int, maxtime: int) -> int:
        """Mean price over [mintime, maxtime], truncated toward zero; 0 if empty."""
        if mintime > maxtime:
            return 0

        left = bisect.bisect_left(self._timestamps, mintime)
        right = bisect.bisect_right(self._timestamps, maxtime, lo=left)
        if left == right:
            return 0

        total = sum(self._prices[left:right])
        mean = abs(total) // (right - left)
        return mean if total >= 0 else -mean


class MeansToAnEndHandler(ProtocolHandler):
    """
    Binary price-history service over fixed 9-byte messages.

    - `I` inserts a (timestamp, price) pair into the session and is not
      answered.
    - `Q` asks for the mean price between two timestamps, inclusive, and is
      answered with a big-endian signed 32-bit integer.

    Any other message type is malformed. History lives in the handler, so
    each connection sees only its own prices.
    """

    def __init__(self) -> None:
        self.history = PriceHistory()
        self._logger = logging.getLogger("solutions.means_to_an_end")

    def get_delimiter(self) -> DelimiterPolicy:
        return ExactBytes(MESSAGE.size)

    def process_request(self, payload: bytes) -> bytes:
        if len(payload) != MESSAGE.size:
            raise RequestError(payload, reason=f"expected {MESSAGE.size} bytes")

        kind, a, b = MESSAGE.unpack(payload)

        if kind == INSERT:
            self.history.insert(timestamp=a, price=b)
            return b""

        if kind == QUERY:
            mean = self.history.mean(mintime=a, maxtime=b)
            self._logger.debug(f"Mean over [{a}, {b}] of {len(self.history)} prices: {mean}")
            return MEAN.pack(mean)

        raise RequestError(payload, reason=f"unknown message type {kind!r}")
