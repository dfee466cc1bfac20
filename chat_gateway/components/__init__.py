"""
Chat Gateway Components.

- core/       - Foundational components (constants, log sanitization, exceptions)
- connection/ - Session record, registry, heartbeat monitor
- messages/   - Inbound message router
- endpoints/  - WebSocket endpoint
- metrics/    - Observability (collector)
"""
