"""Type aliases for dynamic data structures throughout the application.

All types defined here should be JSON-serializable to support logging,
API responses, and persistence layers.
"""

from typing import Any

# Payload attached to an audit entry; anything the sink can serialize
type AuditPayload = Any

# Snapshot of inbound request metadata kept on a summary record
type RequestSnapshot = dict[str, str | None]
