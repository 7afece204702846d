"""Flow orchestration for workflow generation.

Two paths converge at validation:

Blueprint path: Analysis → Blueprint → Validation → Result
Model path:     Analysis → [Blueprint] → Context → Model Selection → Prompt → Generation → Validation → Result

When the model path cannot produce a draft (no providers, no tier fits its
ceiling, every route failed), the flow falls back to the blueprint node
unless it already ran; otherwise the job fails at the result node.
"""

import logging

from flowsmith.core.cost_monitor import CostMonitor
from flowsmith.core.settings import FlowsmithSettings
from flowsmith.generation.context_builder import DocumentationContextBuilder
from flowsmith.generation.invoker import GenerationInvoker
from flowsmith.generation.model_router import ModelRouter
from flowsmith.generation.nodes import (
    BlueprintNode,
    ComplexityAnalysisNode,
    ContextAssemblyNode,
    GenerationNode,
    ModelSelectionNode,
    PromptBuildingNode,
    ResultNode,
    ValidationNode,
)
from flowsmith.generation.prompt_builder import PromptBuilder
from flowsmith.generation.validator import WorkflowValidator
from pocketflow import Flow

logger = logging.getLogger(__name__)


def create_generation_flow(
    settings: FlowsmithSettings,
    cost_monitor: CostMonitor,
    context_builder: DocumentationContextBuilder,
    router: ModelRouter,
    invoker: GenerationInvoker,
    validator: WorkflowValidator,
) -> Flow:
    """Create the generation flow for one job.

    Args:
        settings: Loaded settings
        cost_monitor: Shared cost monitor (records attempts, reports per-job cost)
        context_builder: Documentation assembler bound to a node catalog
        router: Model router for the route chain
        invoker: Generation invoker
        validator: Workflow validator

    Returns:
        Flow that expects ``job`` in the shared store and leaves ``result`` there
    """
    analysis = ComplexityAnalysisNode(settings)
    blueprint = BlueprintNode()
    context = ContextAssemblyNode(context_builder)
    model_selection = ModelSelectionNode(router)
    prompt_building = PromptBuildingNode(PromptBuilder(settings.prompt))
    generation = GenerationNode(invoker)
    validation = ValidationNode(validator)
    result = ResultNode(cost_monitor)

    flow = Flow(start=analysis)

    analysis - "blueprint" >> blueprint
    analysis - "model" >> context

    blueprint - "validate" >> validation
    blueprint - "model" >> context
    blueprint - "failed" >> result

    context >> model_selection

    model_selection - "prompt" >> prompt_building
    model_selection - "blueprint" >> blueprint
    model_selection - "failed" >> result

    prompt_building - "generate" >> generation
    prompt_building - "blueprint" >> blueprint
    prompt_building - "failed" >> result

    generation - "validate" >> validation
    generation - "blueprint" >> blueprint
    generation - "failed" >> result

    validation >> result

    logger.debug("Created generation flow with 8 nodes")
    return flow
