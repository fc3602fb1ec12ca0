"""Transaction graph, rounds, Snowball sampling, caching, indexing, metrics and logging for a DAG ledger."""

__version__ = "0.1.0"

__all__ = ["console", "graph", "index", "logs", "lru", "metrics", "round", "snowball"]