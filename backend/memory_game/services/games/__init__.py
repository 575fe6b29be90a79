"""Game domain services: deck generation, scoring and the session lifecycle.

Routes call into this package; nothing here knows about HTTP.
"""
