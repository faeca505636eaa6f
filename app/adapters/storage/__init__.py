"""Key-value storage adapters for persisted frequency state.

The policy depends only on AbstractKeyValueStore, so the in-memory store used
in development can be replaced by a shared backend without touching it.
"""
