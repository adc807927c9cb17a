"""
Infrastructure
==============

Technical adapters shared by the bounded contexts (database engine and sessions).
"""
