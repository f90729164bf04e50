"""Core infrastructure package for shared application functionality.

- **config**: Centralized configuration management with environment support
- **context**: Request context and transaction ID management
- **audit**: Detail and summary audit records correlated by transaction ID
- **exceptions**: HTTP-classified exception hierarchy and the error classifier
- **error_context**: Sensitive data sanitization for safe logging
- **logging**: Structured logging with Loguru
- **observability**: Distributed tracing with OpenTelemetry
- **types**: Type aliases for better code clarity
"""
