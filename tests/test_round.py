import hashlib
import io
import struct
from dataclasses import dataclass

import pytest

from dagledger.round import (
    MERKLE_NODE_ID_SIZE,
    ZERO_MERKLE_NODE_ID,
    ZERO_ROUND_ID,
    Round,
    new_round,
    unmarshal_round,
)


@dataclass
class FakeTx:
    id: bytes
    depth: int

    def marshal(self):
        return self.id + struct.pack(">Q", self.depth)


def read_fake_tx(reader):
    data = reader.read(40)
    if len(data) != 40:
        raise ValueError("short transaction")
    return FakeTx(data[:32], struct.unpack(">Q", data[32:])[0])


def _round(index=1, applied=10, start_depth=1, end_depth=5):
    merkle = bytes(range(MERKLE_NODE_ID_SIZE))
    return new_round(
        index, merkle, applied, FakeTx(b"\x01" * 32, start_depth), FakeTx(b"\x02" * 32, end_depth)
    )


def test_marshal_layout():
    r = _round(index=7, applied=3)
    data = r.marshal()
    assert data[:8] == (7).to_bytes(8, "big")
    assert data[8 : 8 + MERKLE_NODE_ID_SIZE] == r.merkle
    offset = 8 + MERKLE_NODE_ID_SIZE
    assert data[offset : offset + 8] == (3).to_bytes(8, "big")
    assert data[offset + 8 :] == r.start.marshal() + r.end.marshal()


def test_id_is_blake2b_of_encoding():
    r = _round()
    assert r.id == hashlib.blake2b(r.marshal(), digest_size=32).digest()
    assert r.id != ZERO_ROUND_ID


def test_round_trip():
    r = _round(index=42, applied=99)
    decoded = unmarshal_round(io.BytesIO(r.marshal()), read_fake_tx)
    assert decoded == r


def test_round_trip_from_bytes():
    r = _round()
    assert unmarshal_round(r.marshal(), read_fake_tx) == r


@pytest.mark.parametrize(
    "cut, message",
    [
        (4, "round index"),
        (10, "round merkle root"),
        (8 + MERKLE_NODE_ID_SIZE + 3, "round num ancestors"),
        (8 + MERKLE_NODE_ID_SIZE + 8 + 5, "round start transaction"),
        (8 + MERKLE_NODE_ID_SIZE + 8 + 40 + 5, "round end transaction"),
    ],
)
def test_truncated_input_raises(cut, message):
    data = _round().marshal()[:cut]
    with pytest.raises(ValueError, match=message):
        unmarshal_round(data, read_fake_tx)


def test_different_contents_give_different_ids():
    assert _round(applied=1).id != _round(applied=2).id


def test_expected_difficulty_minimum_cases():
    assert _round(end_depth=0).expected_difficulty(5, 2.0) == 5
    assert _round(applied=0).expected_difficulty(5, 2.0) == 5
    # Equal applied count and depth span gives a ratio of one.
    assert _round(applied=4, start_depth=1, end_depth=5).expected_difficulty(5, 2.0) == 5


def test_expected_difficulty_scales_with_ratio():
    r = _round(applied=8, start_depth=1, end_depth=3)
    assert r.expected_difficulty(5, 1.0) == 7


def test_expected_difficulty_is_symmetric():
    a = _round(applied=12, start_depth=0, end_depth=3)
    b = _round(applied=3, start_depth=0, end_depth=12)
    assert a.expected_difficulty(4, 3.0) == b.expected_difficulty(4, 3.0)
    assert a.expected_difficulty(4, 3.0) > 4


def test_empty_round_defaults():
    r = Round()
    assert r.id == ZERO_ROUND_ID
    assert r.merkle == ZERO_MERKLE_NODE_ID
    assert r.expected_difficulty(3, 1.0) == 3