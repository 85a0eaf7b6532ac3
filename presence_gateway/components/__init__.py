"""
Presence Gateway Components.

Organized into domain-specific modules:
- core/       - Foundational components (constants, errors, log safety)
- connection/ - Connection handles and the identity registry
- events/     - Inbound frame parsing, outbound frames, message routing
- endpoints/  - WebSocket endpoints (base, handlers)
- metrics/    - Observability (collector)

Import from the specific submodules; this package re-exports nothing so the
endpoints can depend on presence_gateway.core without an import cycle.
"""
