"""Building blocks for a DNS forwarder: containers, caches, EDNS0 and message
helpers, hosts lookup, async execution chains, data providers, configuration
loading and a plugin registry."""

__version__ = "4.0.0"