"""Use-case services and lifecycle event handlers.

Every public service method returns a ``Result``; domain exceptions never
escape this layer.
"""
