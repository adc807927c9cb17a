"""CaseWatch: SLA tracking for marketplace cases."""

__version__ = "1.0.0"
