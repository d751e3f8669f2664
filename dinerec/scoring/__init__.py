"""
Storage-agnostic scoring library.

Responsibilities:
- Venue-to-venue content similarity from static attributes.
- Venue-to-venue collaborative similarity from shared completed bookings.
- Hybrid blending and per-kind persistence thresholds.
- Trend score and reason strings for recent venue activity.

Everything here is a pure function of plain data; I/O lives in
``dinerec.batch`` and ``dinerec.recommendations``.
"""
