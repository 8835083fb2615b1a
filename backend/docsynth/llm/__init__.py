"""
LLM Package

Azure OpenAI access for the synthesis step and the prompt-authoring helpers.

Public API::

    from docsynth.llm import LLMGateway, SynthesisStep

    step   = SynthesisStep.from_settings(settings)
    output = await step.run(corpus_text, system_prompt, file_names, directive)
"""

from docsynth.llm.gateway import GenerationResult, LLMGateway
from docsynth.llm.synthesis import SynthesisOutput, SynthesisStep, build_recap_block

__all__ = [
    "GenerationResult",
    "LLMGateway",
    "SynthesisOutput",
    "SynthesisStep",
    "build_recap_block",
]
