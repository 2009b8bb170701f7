"""Business Logic Services.

This package contains the service modules that implement the core
logic of the signaling relay.

Service Categories:
- Signaling: client registry, call registry, message dispatch, liveness
- Metrics: Prometheus instrumentation for the relay
"""
