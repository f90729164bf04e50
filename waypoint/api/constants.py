"""API-related constants."""

# Envelope text
SUCCESS_MESSAGE = "Request successful"
UNKNOWN_URL_MESSAGE = "Unknown URL"

# Liveness
HEALTH_PATH = "/healthz"
HEALTH_BODY = "OK"

# Request handling
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Starlette answers these for unmatched paths and methods
UNMATCHED_ROUTE_STATUS_CODES = {404, 405}
