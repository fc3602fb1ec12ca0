from dagledger.index import Indexer


def _indexer(*ids):
    indexer = Indexer()
    for tx_id in ids:
        indexer.index(tx_id)
    return indexer


def test_find_returns_matching_prefix_in_order():
    indexer = _indexer("abcd", "ab12", "ff00", "abff")
    assert indexer.find("ab", 10) == ["ab12", "abcd", "abff"]


def test_find_respects_count():
    indexer = _indexer("aa01", "aa02", "aa03")
    assert indexer.find("aa", 2) == ["aa01", "aa02"]


def test_find_non_positive_count_is_empty():
    indexer = _indexer("aa01")
    assert indexer.find("aa", 0) == []


def test_find_no_match():
    indexer = _indexer("aa01", "bb02")
    assert indexer.find("cc", 5) == []


def test_empty_query_matches_everything():
    indexer = _indexer("bb", "aa")
    assert indexer.find("", 5) == ["aa", "bb"]


def test_remove():
    indexer = _indexer("aa01", "aa02")
    indexer.remove("aa01")
    indexer.remove("not-there")
    assert indexer.find("aa", 5) == ["aa02"]


def test_index_is_idempotent():
    indexer = _indexer("aa01", "aa01")
    assert len(indexer) == 1
    assert indexer.find("aa01", 5) == ["aa01"]