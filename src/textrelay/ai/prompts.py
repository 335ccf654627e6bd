"""Prompt templates for the text operations.

Cloud backends send these prompts verbatim; the on-device backend uses them
for merge calls routed to its general-purpose writer capability.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Mapping

from .ai_types import OperationKind

MERGE_STAGE = "merge"
STAGE_PARAM = "stage"

DEFAULT_SUMMARY_LENGTH = "medium"
DEFAULT_SUMMARY_TYPE = "key-points"
DEFAULT_SUMMARY_FORMAT = "markdown"
DEFAULT_REWRITE_TONE = "professional"
DEFAULT_REWRITE_STYLE = "neutral"
DEFAULT_REWRITE_COMPLEXITY = "intermediate"
DEFAULT_STRICTNESS = "medium"
DEFAULT_TARGET_LANGUAGE = "en"

LANGUAGE_NAMES: Mapping[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "ru": "Russian",
    "pt": "Portuguese",
    "it": "Italian",
    "ar": "Arabic",
    "hi": "Hindi",
    "th": "Thai",
    "vi": "Vietnamese",
}

_STRICTNESS_PROMPTS: Mapping[str, tuple[str, float]] = {
    "strict": ("Perform a highly critical credibility analysis of this text.", 0.1),
    "medium": ("Evaluate the credibility, truthfulness, and potential bias of this text.", 0.3),
    "lenient": ("Perform a balanced credibility analysis of this text.", 0.5),
}

_VALIDATION_FORMAT = """Return your response in this exact format:
1. *Source Verification*: Assess the credibility of sources (if mentioned) or lack thereof
2. *Fact-Checking*: Verify factual claims considering the current date is {today}
3. *AI Detection*: Evaluate if text shows signs of AI generation (repetitive patterns, generic phrasing)
4. *Link & Domain Safety*: Check for suspicious URLs or domains (if present)
5. *Misinformation Risk*: Assess likelihood of misleading or false information
6. *Bias Detection*: Identify potential bias (political, commercial, cultural, etc.)"""


@dataclass(slots=True, frozen=True)
class PromptSpec:
    """Rendered prompt plus the sampling temperature it was tuned for."""

    prompt: str
    temperature: float | None = None


def language_name(code: str | None) -> str:
    normalized = (code or "").strip()
    if not normalized:
        return LANGUAGE_NAMES[DEFAULT_TARGET_LANGUAGE]
    return LANGUAGE_NAMES.get(normalized.lower(), normalized)


def is_merge_stage(params: Mapping[str, str]) -> bool:
    return params.get(STAGE_PARAM) == MERGE_STAGE


def build_prompt(
    operation: OperationKind,
    text: str,
    params: Mapping[str, str] | None = None,
    *,
    today: date | None = None,
) -> PromptSpec:
    """Render the prompt for *operation* over *text*.

    ``params[STAGE_PARAM] == MERGE_STAGE`` selects the instruction that folds
    partial results into one final result.
    """

    options = dict(params or {})
    if is_merge_stage(options):
        return build_merge_prompt(operation, text, options)
    if operation is OperationKind.SUMMARIZE:
        return _summarize_prompt(text, options)
    if operation is OperationKind.TRANSLATE:
        return _translate_prompt(text, options)
    if operation is OperationKind.VALIDATE:
        return _validate_prompt(text, options, today or date.today())
    if operation is OperationKind.REWRITE:
        return _rewrite_prompt(text, options)
    if operation is OperationKind.CUSTOM_PROMPT:
        return _custom_prompt(text, options)
    raise ValueError(f"Unsupported operation: {operation!r}")


def build_merge_prompt(operation: OperationKind, combined: str, params: Mapping[str, str]) -> PromptSpec:
    suffix = _language_instruction(params)
    if operation is OperationKind.SUMMARIZE:
        length, summary_type, summary_format = _summary_options(params)
        return PromptSpec(
            f"Please create a final summary in {length} length and {summary_type} format: "
            f"{summary_format} from these partial summaries.{suffix}\n\n{combined}"
        )
    if operation is OperationKind.VALIDATE:
        return PromptSpec(
            "Combine these partial credibility analyses of consecutive parts of one text into a single "
            f"final analysis that keeps the same six-point format.{suffix}\n\n{combined}",
            temperature=_strictness(params)[1],
        )
    if operation is OperationKind.CUSTOM_PROMPT:
        user_prompt = _require_user_prompt(params)
        return PromptSpec(
            f'Combine these partial responses to the user prompt "{user_prompt}" into one final '
            f"response.{suffix}\n\n{combined}",
            temperature=0.1,
        )
    raise ValueError(f"{operation.value} results are joined without a merge prompt")


# -----------------------------------------------------------------------------
# Per-operation templates
# -----------------------------------------------------------------------------


def _summarize_prompt(text: str, params: Mapping[str, str]) -> PromptSpec:
    length, summary_type, summary_format = _summary_options(params)
    return PromptSpec(
        f"Please summarize the following text in {length} length and {summary_type} format: "
        f"{summary_format}.{_language_instruction(params)}\n\n{text}"
    )


def _translate_prompt(text: str, params: Mapping[str, str]) -> PromptSpec:
    source = params.get("source_language") or "auto"
    target = params.get("target_language") or DEFAULT_TARGET_LANGUAGE
    if source == "auto":
        lead = f"Translate the following text to {language_name(target)}."
    else:
        lead = f"Translate the following text from {language_name(source)} to {language_name(target)}."
    return PromptSpec(f"{lead} Only return the translated text, nothing else:\n\n{text}")


def _validate_prompt(text: str, params: Mapping[str, str], today: date) -> PromptSpec:
    current = f"{today:%B} {today.day}, {today.year}"
    instruction, temperature = _strictness(params)
    prompt = f"""IMPORTANT CONTEXT: Today's date is {current}. When analyzing this text, consider that:
- References to dates close to {current} are REAL-TIME events
- Do NOT flag recent events as "speculation" or "unverifiable future claims"
- Focus on factual accuracy, source credibility, and logical consistency

{instruction}{_language_instruction(params)}

Text to analyze:
"{text}"

{_VALIDATION_FORMAT.format(today=current)}

Be objective and consider temporal context. Recent dates are NOT speculation."""
    return PromptSpec(prompt, temperature=temperature)


def _rewrite_prompt(text: str, params: Mapping[str, str]) -> PromptSpec:
    tone = params.get("tone") or DEFAULT_REWRITE_TONE
    style = params.get("style") or DEFAULT_REWRITE_STYLE
    complexity = params.get("complexity") or DEFAULT_REWRITE_COMPLEXITY
    return PromptSpec(
        f"Please rewrite the following text with a {tone} tone, {style} style, and {complexity} "
        f"complexity.{_language_instruction(params)}\n\n{text}",
        temperature=0.1,
    )


def _custom_prompt(text: str, params: Mapping[str, str]) -> PromptSpec:
    user_prompt = _require_user_prompt(params)
    return PromptSpec(
        f'You are a helpful assistant. User prompt: "{user_prompt}".{_language_instruction(params)} '
        f"Respond:\n\n{text}",
        temperature=0.1,
    )


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _summary_options(params: Mapping[str, str]) -> tuple[str, str, str]:
    return (
        params.get("length") or DEFAULT_SUMMARY_LENGTH,
        params.get("type") or DEFAULT_SUMMARY_TYPE,
        params.get("format") or DEFAULT_SUMMARY_FORMAT,
    )


def _strictness(params: Mapping[str, str]) -> tuple[str, float]:
    level = (params.get("strictness") or DEFAULT_STRICTNESS).strip().lower()
    return _STRICTNESS_PROMPTS.get(level, _STRICTNESS_PROMPTS[DEFAULT_STRICTNESS])


def _language_instruction(params: Mapping[str, str]) -> str:
    language = (params.get("respond_in") or "").strip()
    if not language:
        return ""
    return f" Respond in {language_name(language)} language."


def _require_user_prompt(params: Mapping[str, str]) -> str:
    user_prompt = (params.get("user_prompt") or "").strip()
    if not user_prompt:
        raise ValueError("A user prompt is required for custom prompt operations")
    return user_prompt


__all__ = [
    "PromptSpec",
    "build_prompt",
    "build_merge_prompt",
    "is_merge_stage",
    "language_name",
    "LANGUAGE_NAMES",
    "MERGE_STAGE",
    "STAGE_PARAM",
]
