"""Byte-lane masks for sub-word accesses on a 64-bit bus."""

from __future__ import annotations

from dataclasses import dataclass

_ALL_ONES = (1 << 64) - 1


@dataclass(frozen=True)
class ByteMask8:
    """A 64-bit mask selecting whole bytes, most significant byte first."""

    value: int = _ALL_ONES

    def __post_init__(self) -> None:
        if not 0 <= self.value <= _ALL_ONES:
            raise ValueError(f"mask out of range: {self.value:#x}")

    @classmethod
    def from_access(cls, width: int, alignment: int) -> ByteMask8:
        """Mask for an access of ``width`` bytes starting ``alignment`` bytes in."""
        if not 0 <= width <= 8:
            raise ValueError(f"width must be 0..8 bytes, got {width}")
        if not 0 <= alignment <= 7:
            raise ValueError(f"alignment must be 0..7 bytes, got {alignment}")
        shift = (64 - width * 8) % 64
        mask = ((_ALL_ONES << shift) & _ALL_ONES) >> (alignment * 8)
        return cls(mask)

    @classmethod
    def full(cls) -> ByteMask8:
        """Mask covering all eight bytes."""
        return cls(_ALL_ONES)

    def apply(self, data: int) -> int:
        """Keep only the bytes of ``data`` selected by the mask."""
        return data & self.value

    def masked_insert(self, dest: int, value: int) -> int:
        """Return ``dest`` with the masked bytes replaced by those of ``value``."""
        return ((dest & ~self.value) | (value & self.value)) & _ALL_ONES

    def size(self) -> int:
        """Number of bits set in the mask."""
        return bin(self.value).count("1")

    def __and__(self, other: ByteMask8) -> ByteMask8:
        if not isinstance(other, ByteMask8):
            return NotImplemented
        return ByteMask8(self.value & other.value)

    def __repr__(self) -> str:
        return f"ByteMask8({self.value:016x})"