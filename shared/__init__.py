"""
Shared modules for the service retirement simulation.

Contains the Service record and the Pydantic schemas for retirement events,
workload samples and agent thresholds used across all components.
"""
