"""
Prompt authoring helpers.

  DEFAULT_ANALYSIS_PROMPT_TEMPLATE   served by GET /prompts/default
  generate_system_prompt()           free-form idea  → polished system prompt
  structure_user_inputs()            structured notes → system prompt that
                                     references the runtime recap tags

Both helpers are one LLMGateway call each and raise SynthesisError on failure.
"""

from __future__ import annotations

import logging
from typing import Final

from docsynth.core.exceptions import InputValidationError, SynthesisError
from docsynth.llm.gateway import LLMGateway

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Default analysis prompt
# ---------------------------------------------------------------------------

DEFAULT_ANALYSIS_PROMPT_TEMPLATE: Final[str] = """\
**Your Role:** You are an expert financial analyst who synthesizes quarterly equity research reports.

**Primary Objective:** The input is text and tables extracted from <fileCount/> research reports \
(<allFileNames/>), possibly from several research houses covering the same company. Explain how each \
house's main message, sentiment, recommendation and key estimates evolved from quarter to quarter.

**Input Data Format:** Each document starts with `## File: <name>` and a page count, followed by \
`### Extracted Tables` in Markdown and the document body. Documents are separated by `---`. \
Tables usually carry the recommendations, target prices and estimate changes, so weigh them first. \
Infer research house and quarter from file names and table context where possible.

**Analysis & Output:**
1. Group findings by research house.
2. Within each house, order findings chronologically.
3. For each report, summarize recommendation, target price, key estimate trends and sentiment.
4. Close each house with a short paragraph on how its view evolved overall.
5. Use Markdown headings and bullet lists.
6. Be concise. Focus on changes over time.
7. Use only the provided documents. Say so when a source or date is unclear.

If <optionalUserInput/> is present, treat it as a priority directive for this run.
"""

# ---------------------------------------------------------------------------
# Meta prompts
# ---------------------------------------------------------------------------

_GENERATE_META_PROMPT: Final[str] = """\
You are an expert prompt engineer. Turn the user's raw ideas into a high-quality system prompt \
for a capable language model.

The prompt you write must:
1. Be literal and unambiguous about the task, the model's role and the expected output.
2. Be specific, with concrete constraints wherever the user's notes imply them.
3. Give the model its persona, constraints, tone and output structure.
4. Break complex work into explicit steps.
5. Tell the model what to answer when the documents do not contain the information.
6. Define the output format, length, style and language.

Return only the system prompt. No preface, notes or explanation.\
"""

_STRUCTURE_META_PROMPT: Final[str] = """\
You are an expert prompt engineer. Transform the user's notes below into a complete, well-structured \
system prompt that another model will follow.

Include, inferring from the notes where needed:
1. Role: the persona the executing model should adopt.
2. Context and task: background and the primary goal.
3. Audience, if mentioned.
4. How input is provided, e.g. "(User will provide input via uploaded documents)".
5. Runtime data: reference <fileCount/>, <allFileNames/> and <optionalUserInput/> by name where useful. \
If the notes make the ad-hoc input important, tell the model to read <optionalUserInput/> first.
6. Output structure and any examples given.
7. A "Thought Process (do NOT reveal):" section with the steps the model should plan through.
8. Style rules and things to avoid.
9. Quantitative or length limits, if any.

The runtime appends a "--- Contextual Information Recap ---" section carrying the real values of \
those tags. Do not fill them in and do not write that section yourself.

User's raw input notes:
---
{user_inputs}
---

Return only the system prompt, ready to use. No conversational text before or after it.\
"""

GENERATE_MAX_TOKENS:  Final[int]   = 1024
STRUCTURE_MAX_TOKENS: Final[int]   = 2048
ASSIST_TEMPERATURE:   Final[float] = 0.5


def _require_text(value: str | None, message: str) -> str:
    if not value or not value.strip():
        raise InputValidationError(message)
    return value


async def generate_system_prompt(gateway: LLMGateway, user_input: str) -> str:
    """Free-form idea → system prompt. Empty input and empty output are both errors."""
    user_input = _require_text(user_input, "Input for prompt generation cannot be empty.")
    user_message = (
        "User's raw input (ideas or instructions to turn into a system prompt):\n"
        f"---\n{user_input}\n---\n\n"
        "Based on the input above, generate ONLY the refined and complete system prompt."
    )

    result = await gateway.generate(
        _GENERATE_META_PROMPT,
        user_message,
        max_tokens=GENERATE_MAX_TOKENS,
        temperature=ASSIST_TEMPERATURE,
    )
    if not result.text.strip():
        raise SynthesisError("AI failed to generate a prompt. The result was empty.")

    logger.info("PromptAssist | generated chars=%d", len(result.text))
    return result.text.strip()


async def structure_user_inputs(gateway: LLMGateway, user_inputs: str) -> str:
    """Structured notes → system prompt referencing the recap tags."""
    user_inputs = _require_text(user_inputs, "Input for prompt structuring cannot be empty.")
    result = await gateway.generate(
        "",
        _STRUCTURE_META_PROMPT.format(user_inputs=user_inputs),
        max_tokens=STRUCTURE_MAX_TOKENS,
        temperature=ASSIST_TEMPERATURE,
    )
    if not result.text.strip():
        raise SynthesisError("Failed to structure prompt. The result was empty.")

    logger.info("PromptAssist | structured chars=%d", len(result.text))
    return result.text
