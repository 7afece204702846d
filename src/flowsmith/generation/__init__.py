"""Workflow generation pipeline.

The pipeline is a pocketflow flow whose shared store is initialized by the
coordinator. Expected keys:
- job: the validated Job
- cancel_event: optional threading.Event
- progress_callback: optional callable(percent, stage)

Keys written during execution are listed in ``flowsmith.generation.nodes``.
"""

from flowsmith.generation.flow import create_generation_flow

__all__ = ["create_generation_flow"]
