import struct
from dataclasses import dataclass

from dagledger.round import ZERO_MERKLE_NODE_ID, ZERO_ROUND_ID, Round, new_round
from dagledger.snowball import SNOWBALL_DEFAULT_BETA, Snowball


@dataclass
class FakeTx:
    id: bytes
    depth: int
    tag: int

    def marshal(self):
        return self.id + struct.pack(">QB", self.depth, self.tag)


def _rounds():
    start = FakeTx(b"\x01" * 32, 0, 1)
    end_a = FakeTx(b"\x02" * 32, 0, 2)
    end_b = FakeTx(b"\x03" * 32, 0, 3)
    a = new_round(1, ZERO_MERKLE_NODE_ID, 1337, start, end_a)
    b = new_round(1, ZERO_MERKLE_NODE_ID, 1010, start, end_b)
    return a, b


def _state(snowball):
    return (
        dict(snowball.candidates),
        dict(snowball.counts),
        snowball.count,
        snowball.last_id,
        snowball.preferred_id,
        snowball.decided(),
    )


def _assert_cleared(snowball):
    assert not snowball.decided()
    assert snowball.preferred() is None
    assert snowball.count == 0
    assert len(snowball.counts) == 0
    assert len(snowball.candidates) == 0


def test_default_beta():
    assert Snowball().beta == SNOWBALL_DEFAULT_BETA


def test_unanimous_sampling_terminates():
    snowball = Snowball(beta=10)
    a, _ = _rounds()

    assert snowball.preferred() is None

    for _ in range(12):
        assert not snowball.decided()
        snowball.tick(a)
        assert snowball.preferred() == a

    assert snowball.decided()
    assert snowball.preferred() == a
    assert snowball.count == 11
    assert len(snowball.counts) == 1
    assert len(snowball.candidates) == 1

    cloned = _state(snowball)
    snowball.tick(a)
    assert _state(snowball) == cloned

    snowball.reset()
    _assert_cleared(snowball)


def test_prefer_first_then_unanimous_sampling():
    snowball = Snowball(beta=10)
    a, _ = _rounds()

    snowball.prefer(a)
    assert snowball.preferred() == a

    for _ in range(12):
        assert not snowball.decided()
        snowball.tick(a)
        assert snowball.preferred() == a

    assert snowball.decided()
    assert snowball.preferred() == a
    assert snowball.count == 11
    assert len(snowball.counts) == 1
    assert len(snowball.candidates) == 1

    snowball.reset()
    _assert_cleared(snowball)


def test_overthrowing_preference_and_nil_ticks():
    snowball = Snowball(beta=10)
    a, b = _rounds()

    for _ in range(11):
        assert not snowball.decided()
        snowball.tick(a)
        assert snowball.preferred() == a

    assert not snowball.decided()

    for i in range(12):
        assert not snowball.decided()
        snowball.tick(b)
        if i == 11:
            assert snowball.preferred() == b
        else:
            assert snowball.preferred() == a

    assert snowball.counts[a.id] == 11
    assert snowball.counts[b.id] == 12
    assert snowball.decided()
    assert snowball.preferred() == b
    assert snowball.count == 11
    assert len(snowball.counts) == 2
    assert len(snowball.candidates) == 2

    snowball.tick(None)
    snowball.tick(Round())

    assert snowball.counts[a.id] == 11
    assert snowball.counts[b.id] == 12
    assert snowball.decided()
    assert snowball.preferred() == b
    assert snowball.count == 11
    assert len(snowball.counts) == 2
    assert len(snowball.candidates) == 2


def test_nil_tick_before_decision_resets_streak():
    snowball = Snowball(beta=10)
    a, _ = _rounds()

    snowball.tick(a)
    snowball.tick(a)

    assert snowball.last_id == a.id
    assert snowball.progress() == 1
    assert len(snowball.counts) == 1

    snowball.tick(None)

    assert snowball.last_id == ZERO_ROUND_ID
    assert snowball.progress() == 0
    assert len(snowball.counts) == 1