"""Failure taxonomy for one pipeline run.

Phase failures (fetch, dedup, persist) abort the run and are logged by the
orchestrator. Enrichment failures are per item and never leave the fan-out.
"""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for every pipeline failure."""


class FetchFailure(PipelineError):
    """Feed unreachable or returned an unexpected payload."""


class DedupFailure(PipelineError):
    """Store existence query failed."""


class EnrichmentFailure(PipelineError):
    """Geo inference failed for a single item."""


class MalformedResponse(EnrichmentFailure):
    """Inference output was not a strict JSON object with address/lat/lng."""


class PersistFailure(PipelineError):
    """Batch insert failed; nothing from the batch was written."""
