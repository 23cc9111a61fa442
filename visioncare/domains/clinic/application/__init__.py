"""
Clinic Application Layer

Ports, DTOs, services and use cases.
"""
