"""
jsonapi-store Test Suite.

This package contains:
- unit/: Unit tests (registry, records, relationships, codec, store)
- integration/: save/destroy and finders against scripted and httpx mock transports
"""
