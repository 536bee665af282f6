"""
CCM Data Server - HTTP data gateway for ccm datastores.

This package implements a small gateway that lets browser clients read,
write and delete datasets in a document store (MongoDB) over plain HTTP:

    ┌─────────────┐     ┌─────────────┐     ┌────────────┐     ┌─────────┐
    │   Browser   │────▶│ HTTP (CORS) │────▶│ Dispatcher │────▶│ MongoDB │
    │ (ccm store) │◀────│   Gateway   │◀────│  get/set/  │◀────│         │
    └─────────────┘     └─────────────┘     │    del     │     └─────────┘
                                            └────────────┘

Invariants:
    - Dataset keys are validated against [A-Za-z0-9_-]+ before reaching the store
    - Composite keys are stored as comma-joined identifiers
    - created_at is written once; updated_at on every write
    - Every failure is reported to the client as "forbidden", never as detail

How to change safely:
    - Keep the key grammar comma-free, the identifier encoding depends on it
    - New store backends must implement the DocumentStore protocol
    - The request shape is shared with existing browser clients, don't rename fields
"""

from ._version import __version__

__all__ = ["__version__"]
