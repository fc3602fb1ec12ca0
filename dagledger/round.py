"""Consensus rounds: finalized depth intervals bounded by two critical transactions."""

from __future__ import annotations

import hashlib
import io
import math
import struct
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable, Union

ROUND_ID_SIZE = 32
MERKLE_NODE_ID_SIZE = 16

ZERO_ROUND_ID = bytes(ROUND_ID_SIZE)
ZERO_MERKLE_NODE_ID = bytes(MERKLE_NODE_ID_SIZE)

_U64 = struct.Struct(">Q")
_U64_MASK = (1 << 64) - 1


def _checksum(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=ROUND_ID_SIZE).digest()


@dataclass
class Round:
    """A finalized graph depth interval with the expected Merkle root of ledger state.

    ``start`` and ``end`` are transactions exposing ``depth`` and ``marshal()``.
    """

    id: bytes = ZERO_ROUND_ID
    index: int = 0
    merkle: bytes = ZERO_MERKLE_NODE_ID
    applied: int = 0
    start: Any = None
    end: Any = None

    def marshal(self) -> bytes:
        """Encode the round: index, merkle root, applied count, start and end."""
        return b"".join(
            (
                _U64.pack(self.index),
                bytes(self.merkle),
                _U64.pack(self.applied),
                self.start.marshal(),
                self.end.marshal(),
            )
        )

    def expected_difficulty(self, minimum: int, scale: float) -> int:
        """The critical-transaction difficulty expected for the round after this one."""
        end_depth = self.end.depth if self.end is not None else 0
        start_depth = self.start.depth if self.start is not None else 0
        if end_depth == 0 or self.applied == 0:
            return minimum

        maxs = self.applied
        mins = (end_depth - start_depth) & _U64_MASK
        if mins > maxs:
            maxs, mins = mins, maxs
        if mins == 0:
            return 0xFF
        return int(minimum + scale * math.log2(maxs / mins)) & 0xFF


def new_round(index: int, merkle: bytes, applied: int, start: Any, end: Any) -> Round:
    """Create a round whose ID is the BLAKE2b-256 checksum of its encoding."""
    round_ = Round(index=index, merkle=merkle, applied=applied, start=start, end=end)
    round_.id = _checksum(round_.marshal())
    return round_


def _read_exact(reader: BinaryIO, size: int, what: str) -> bytes:
    data = reader.read(size)
    if data is None or len(data) != size:
        raise ValueError(f"failed to decode {what}: unexpected end of data")
    return bytes(data)


def unmarshal_round(
    reader: Union[BinaryIO, bytes, bytearray],
    read_transaction: Callable[[BinaryIO], Any],
) -> Round:
    """Decode a round; ``read_transaction`` decodes each bounding transaction.

    Raises ValueError if the data is truncated or malformed.
    """
    if isinstance(reader, (bytes, bytearray, memoryview)):
        reader = io.BytesIO(bytes(reader))

    (index,) = _U64.unpack(_read_exact(reader, 8, "round index"))
    merkle = _read_exact(reader, MERKLE_NODE_ID_SIZE, "round merkle root")
    (applied,) = _U64.unpack(_read_exact(reader, 8, "round num ancestors"))

    bounds = []
    for name in ("start", "end"):
        try:
            bounds.append(read_transaction(reader))
        except (ValueError, EOFError, OSError, struct.error) as exc:
            raise ValueError(f"failed to decode round {name} transaction: {exc}") from exc

    return new_round(index, merkle, applied, bounds[0], bounds[1])