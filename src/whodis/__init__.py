"""SIG(0)-authenticated dynamic DNS updates (RFC 2136, RFC 2931)."""

__version__ = "0.1.0"
