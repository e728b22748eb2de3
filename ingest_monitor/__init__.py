"""Ingestion dashboard status monitor.

Client-side engine that tracks per-project database connectivity and
per-file upload jobs exposed by the ingestion backend, decides when to
re-poll each entity, and reconciles the results into aggregate summaries
and stage views for the dashboard.
"""

__version__ = "0.1.0"
