"""
Clinic Infrastructure Layer

Adapters for the local database, the two PostgREST stores and the scheduler.
"""
