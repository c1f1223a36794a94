"""
Bundled provider bindings.

Each module exposes ``PROVIDER_ID``, ``is_configured(settings)`` and
``create_connection_factory(settings)``; ``build_default_registry`` walks them.
"""
