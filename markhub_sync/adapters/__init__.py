"""Adapters for external systems: the Markhub server, the local bookmark tree
and the AI folder recommendation service."""
