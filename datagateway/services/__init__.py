"""Integrations with the object store and the production node listing."""
