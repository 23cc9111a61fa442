"""
Clinic Domain Layer

Entities and value objects for patient identity and consultations.
"""
