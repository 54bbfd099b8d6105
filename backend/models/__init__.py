"""
Models

- models.domain: storage-agnostic dataclasses used by services and repositories
- models.api: pydantic request/response bodies for the HTTP layer
"""
