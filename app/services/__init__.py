"""
Service Organization
====================
Long-running units and their owner:

- supervisor: ProcessSupervisor builds the shared state and starts every unit
- ingress_listener: TCP line protocol feeding the command log
- http_server: optional Flask status API
"""
