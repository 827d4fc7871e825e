"""
                Table Check-in

Binds a walk-in customer's device to a physical table (QR, GPS or a
typed table number) and turns that binding into a persisted ordering
session before menu browsing begins.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
