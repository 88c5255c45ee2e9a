"""Vital-sign telemetry and alerting for a neonatal incubator monitor.

The package holds the sampling, classification and alert lifecycle logic.
Presentation, persistence and notification transports live outside it.
"""
