"""
                        Services Module

Contains the check-in services with the hybrid architecture pattern.
Services that talk to the outside world have Mock (development) and
Real (production) implementations.

Services:
    - backend: Venue API (zones, tables, customers, table sessions)
    - geo: Position sampling and zone validation
    - resolution: QR / GPS / manual table resolution and arbitration
    - session: Session establishment, local persistence, zone presence
    - checkin: Facade driving the whole check-in flow
"""

from table_checkin.services.retry import RetryPolicy

__all__ = ["RetryPolicy"]
