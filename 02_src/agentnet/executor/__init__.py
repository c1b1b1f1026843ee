"""Executor module."""

from .executor import MODEL_RETRY, ExecutionResult, Executor, build_capability_map

__all__ = ["MODEL_RETRY", "ExecutionResult", "Executor", "build_capability_map"]
