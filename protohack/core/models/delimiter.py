from dataclasses import dataclass


@dataclass(frozen=True)
class UntilByte:
    """
    Frame boundary is a terminator byte.

    Each frame ends with, and includes, the first occurrence of `byte`.
    """
    byte: int

    def __post_init__(self) -> None:
        if not 0 <= self.byte <= 255:
            raise ValueError(f"Delimiter must be a single byte value, got {self.byte}")


@dataclass(frozen=True)
class ExactBytes:
    """
    Frames have a fixed length of `size` bytes.
    """
    size: int

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError(f"Frame size must be positive, got {self.size}")


DelimiterPolicy = UntilByte | ExactBytes
"""
Closed choice of framing rules understood by the Framer.
"""


NEWLINE = UntilByte(ord("\n"))
