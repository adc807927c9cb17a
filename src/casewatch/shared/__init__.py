"""
Shared Kernel Module
====================

Generic infrastructure used by every bounded context: structured logging,
HTTP middleware and metrics export.

DO NOT add SLA business logic to the shared kernel.
"""
