"""
Offline batch jobs.

Responsibilities:
- Rebuild the venue similarity table (content, collaborative, hybrid edges).
- Compute time-windowed trend scores and upsert daily trend snapshots.

Both jobs are single-writer and meant to be triggered by an external scheduler.
"""
