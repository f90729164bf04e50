"""Waypoint - typed HTTP routing with correlated audit logging.

Waypoint is a FastAPI service skeleton where every route is declared as a
typed descriptor (method, path, input schemas, handler) and every handler
invocation produces two correlated audit records keyed by a transaction id.

Architecture Overview:
- **API Layer**: typed route descriptors, the registrar that mounts them,
  middleware and the uniform response envelope
- **Core Layer**: configuration, request context, audit logging, error
  classification and other cross-cutting concerns
- **Domain Layer**: the user resource, its schemas, service and the
  data-access contract it depends on
- **Infrastructure Layer**: the SQLAlchemy implementation of that contract
"""
