"""
connectors — OAuth connections to third-party providers.

Provides the connection framework that handles:
  • OAuth 1.0/1.0a and OAuth 2 handshakes (request token, authorize URL, code exchange)
  • Connections bound to typed provider API clients, with OAuth 2 refresh
  • Per-user connection storage with rank ordering and sign-up on first connect
  • Fernet encryption of tokens at rest
  • Lookup of connection factories by provider id or API type

Each provider (GitHub, Twitter, …) ships a ``ConnectionFactory`` subclass under
``connectors.providers``.
"""
