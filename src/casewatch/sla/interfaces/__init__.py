"""
SLA Interfaces Layer
====================

Interface adapters (controllers) for SLA tracking module.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from casewatch.sla.interfaces.controllers import sla_router, get_sla_tracking_service

__all__ = ["sla_router", "get_sla_tracking_service"]
