"""Repository service discovery: the client, its invocation context, transport and trace sinks."""

import importlib

# Loaded on first access: catalog.models imports discovery.errors, and the
# client modules import catalog.models.
_EXPORTS = {
    "RepositoryClient": "discovery.repository_client",
    "ServiceClient": "discovery.service_client",
    "ServiceInvocationContext": "discovery.context",
    "CancellationToken": "discovery.cancellation",
    "LoggingTraceSink": "discovery.trace_sinks",
    "NullTraceSink": "discovery.trace_sinks",
}

__all__ = list(_EXPORTS)


def __getattr__(name):
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    value = getattr(importlib.import_module(_EXPORTS[name]), name)
    globals()[name] = value
    return value


def __dir__():
    return sorted(list(globals()) + __all__)
