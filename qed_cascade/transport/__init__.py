"""Transport module: Event loop and parallel driver."""

from qed_cascade.transport.engine import CascadeEngine, EventResult, RunSummary

__all__ = ["CascadeEngine", "EventResult", "RunSummary"]
