"""Composable request-handling middleware pipelines served over ASGI."""

from __future__ import annotations

from middleware_pipeline.src.core.pipeline import Pipeline, compose

__all__ = ["Pipeline", "compose"]
