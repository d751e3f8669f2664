"""
Online recommendation serving.

Responsibilities:
- Validate inbound queries (personalized, trending, similar, feedback).
- Filter the venue catalog to a candidate set using hard filters.
- Expand a user's history through precomputed hybrid similarity edges,
  blend in learned preferences and a small trending boost.
- Fall back to trending for anonymous users and users without history.
- Record an exposure entry for every ranked list returned.
"""
