"""
Service layer: business rules and every db.session commit live here.

Blueprints resolve the session context and call into these modules;
services never read from ``flask.request``.
"""
