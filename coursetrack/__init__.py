"""coursetrack - course catalog and learner progress API."""

__version__ = "0.1.0"
