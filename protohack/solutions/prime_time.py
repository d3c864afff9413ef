import logging
import math
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from protohack.core.models.errors import RequestError
from protohack.core.ports.handler import ProtocolHandler


METHOD = "isPrime"

# Saturation bounds of a float truncated to a signed 64-bit integer.
I64_MAX = 2 ** 63 - 1
I64_MIN = -(2 ** 63)

# Deterministic Miller-Rabin bases, exact for every n < 3.3 * 10**24.
_WITNESSES = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37)


class PrimeRequestSchema(BaseModel):
    """
    Wire shape of a conforming request. Unknown fields are ignored.
    Only finite numbers are accepted.
    """
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    method: Literal["isPrime"]
    number: float

    @field_validator("number", mode="before")
    @classmethod
    def validate_number(cls, v: object) -> float:
        # JSON booleans decode to bool, a subclass of int.
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("number must be a JSON number")
        try:
            number = float(v)
        except OverflowError:
            raise ValueError("number out of range") from None
        # NaN, Infinity and overflowing literals are not JSON numbers.
        if not math.isfinite(number):
            raise ValueError("number must be finite")
        return number


class PrimeResponseSchema(BaseModel):
    """Wire shape of a conforming response."""
    method: Literal["isPrime"] = METHOD
    prime: bool


@dataclass(frozen=True)
class ConformingRequest:
    method: str
    number: float


@dataclass(frozen=True)
class MalformedRequest:
    pass


Request = ConformingRequest | MalformedRequest


@dataclass(frozen=True)
class ConformingResponse:
    method: str
    prime: bool


@dataclass(frozen=True)
class MalformedResponse:
    pass


Response = ConformingResponse | MalformedResponse


def parse_request(payload: bytes) -> Request:
    """
    Decode one request line.

    Any well-formed JSON object with a string `method` equal to "isPrime"
    and a numeric `number` is conforming, whatever the field order and
    whatever other fields it carries. Everything else is malformed.
    """
    try:
        obj = PrimeRequestSchema.model_validate_json(payload)
    except ValidationError:
        return MalformedRequest()

    return ConformingRequest(method=obj.method, number=obj.number)


def process(request: Request) -> Response:
    match request:
        case ConformingRequest(method=method, number=number):
            return ConformingResponse(method=method, prime=is_prime(number))
        case MalformedRequest():
            return MalformedResponse()


def encode_response(response: ConformingResponse) -> bytes:
    """Serialize a conforming response as one JSON line."""
    body = PrimeResponseSchema(method=response.method, prime=response.prime)
    return body.model_dump_json().encode() + b"\n"


def is_prime(value: float) -> bool:
    """
    Tell whether `value` is a prime number.

    Only finite values with no fractional part can be prime. The value is
    truncated to a 64-bit integer, saturating at its bounds, so inputs
    beyond 2**53 are judged on their float representation.

    A truncated value n is prime when n >= 2 and no integer in
    [2, floor(sqrt(n))] divides it. That is decided here with Miller-Rabin
    over fixed bases, which gives the same answer as trial division for
    every 64-bit integer without its cost on large inputs.
    """
    if not math.isfinite(value) or not float(value).is_integer():
        return False

    n = max(I64_MIN, min(I64_MAX, int(value)))
    if n < 2:
        return False

    for p in _WITNESSES:
        if n % p == 0:
            return n == p

    d, s = n - 1, 0
    while d % 2 == 0:
        d //= 2
        s += 1

    for a in _WITNESSES:
        x = pow(a, d, n)
        if x == 1 or x == n - 1:
            continue
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False

    return True


class PrimeTimeHandler(ProtocolHandler):
    """
    JSON primality service.

    Each request is one line such as `{"method":"isPrime","number":123}`;
    each reply is one line such as `{"method":"isPrime","prime":false}`.
    A malformed request is rejected with RequestError, which makes the
    server send its malformed response and disconnect.

    The handler is stateless: nothing carries over between requests.
    """

    def __init__(self) -> None:
        self._logger = logging.getLogger("solutions.prime_time")

    def process_request(self, payload: bytes) -> bytes:
        response = process(parse_request(payload))

        if isinstance(response, MalformedResponse):
            raise RequestError(payload, reason="not a conforming isPrime request")

        self._logger.debug(f"{payload!r} -> prime={response.prime}")
        return encode_response(response)
