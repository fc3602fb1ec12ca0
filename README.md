# dagledger

Core pieces of a ledger whose transactions form a directed acyclic graph.

## Modules

- `dagledger.graph` has the transaction `Graph`. It validates incoming
  transactions and buffers those whose parents have not arrived yet, raising
  `MissingParentsError`. It records missing ancestors (`missing()`,
  `mark_transaction_as_missing`) and picks eligible parents
  (`find_eligible_parents`) and critical transactions (`find_eligible_critical`).
  It also moves the root (`update_root`, `update_root_depth`) and prunes old depths
  (`prune_below_depth`). Rejected transactions raise `GraphError` or one of its
  subclasses: `AlreadyExistsError`, `MissingParentsError` or
  `DepthLimitExceededError`. `GraphLimits` holds the enforced limits: the maximum
  depth difference, the maximum number of parents, and the nop and highest tag
  values. A `Graph` can also take a `Metrics`, an `Indexer` and a
  `signature_verifier` callable.
- `dagledger.round` defines `Round`, a depth interval bounded by a start and an end
  transaction. Its binary encoding is `Round.marshal`, read back with
  `unmarshal_round(reader, read_transaction)`. `new_round` gives a round whose ID is
  the BLAKE2b-256 checksum of its encoding, and `Round.expected_difficulty` gives
  the difficulty expected for the next round.
- `dagledger.snowball` provides `Snowball`, which decides on one round after it has
  been sampled more than `beta` times in a row.
- `dagledger.lru` provides `LRU`, a thread-safe least-recently-used cache.
  `load` raises `KeyError` for keys it does not hold.
- `dagledger.index` provides `Indexer`, a sorted prefix index over hex transaction
  IDs, for autocompletion.
- `dagledger.metrics` provides `Meter` (counts and mean rate) and `Timer`
  (durations in seconds). `Metrics` bundles them and, given an `interval`, logs a
  report from a background thread until `stop()` is called.
- `dagledger.logs` writes structured JSON log lines. It has per-module loggers
  (`consensus`, `sync`, `tx`, ...) that write to every writer registered with
  `set_writer`.
- `dagledger.console` provides `ConsoleWriter`, which renders those JSON lines in a
  readable, optionally coloured form. It shows only the modules enabled with
  `filter_for`.

## Transactions

The graph and rounds do not define a transaction type. They work with any object
that exposes `id`, `sender`, `creator`, `parent_ids`, `depth`, `tag`, `payload`,
`seed_len`, `logical_units()` and `is_critical(difficulty)`. Rounds also need
`marshal()` on their start and end transactions.

## Installation

```
pip install dagledger
```

To also install the test requirements:

```
pip install "dagledger[test]"
```

## A quick look

Snowball sampling over rounds:

```python
from dagledger.round import Round
from dagledger.snowball import Snowball

round_a = Round(id=b"\x01" * 32, index=1)

snowball = Snowball(beta=10)
for _ in range(12):
    snowball.tick(round_a)

assert snowball.decided()
assert snowball.preferred() is round_a
```

Caching:

```python
from dagledger.lru import LRU

cache = LRU(16)
cache.put(b"\x00" * 32, "value")
cache.load(b"\x00" * 32)          # "value"
cache.most_recently_used(1)       # [b"\x00" * 32]
```

Prefix search over transaction IDs:

```python
from dagledger.index import Indexer

indexer = Indexer()
indexer.index("abcd01")
indexer.index("abce02")
indexer.find("abc", 10)           # ["abcd01", "abce02"]
```

Logging to the console, showing only the consensus module:

```python
import sys
from dagledger import logs
from dagledger.console import ConsoleWriter, filter_for

logs.set_writer("console", ConsoleWriter(sys.stdout, options=[filter_for("consensus")]))
logs.consensus("round_end").info("Finalized consensus round.", new_round=2)
```

## What it does not do

This package is a set of building blocks, not a running node. It has no
transaction type, no signature scheme, no account state, no persistent storage of
rounds, and no networking, gossip or peer synchronisation. It also has no command
to start. Those parts have to be supplied by the application that uses it.

## Running the tests

```
pytest
```