"""
SLA Tracking Module
===================

Bounded Context for Service Level Agreement tracking of marketplace cases.

Responsibilities:
- Resolve first-response and resolution deadlines from SLA configurations
- Record seller responses and case resolutions
- Periodically sweep open cases and flag breaches
- Provide platform-wide and per-seller compliance statistics
- Administer SLA configurations
"""

__version__ = "1.0.0"
