"""
Storage layer for the recommendation core.

Responsibilities:
- Define the record shapes shared by every component (venues, interactions,
  similarity edges, trend snapshots, preference weights, exposure log).
- Provide a thread-safe in-memory store that services receive at construction.
- Load and persist CSV snapshots of the catalog and the derived tables.
"""
