"""
Clinic Domain

Cross-store patient identity reconciliation and crash-safe consultation
lifecycle for the ophthalmology clinic.

Layers:
- domain: entities and value objects (consultation state machine, exam)
- application: ports, DTOs, services (resolver, synchronizer, lifecycle) and use cases
- infrastructure: SQLAlchemy repositories, PostgREST clients, scheduler
- api: FastAPI routes
"""
