import json
import logging
from typing import List, Optional

from .completion import CompletionClient
from .schemas import BugAnalysisResult, CodeAnalysisResult, SuggestionList, normalize

logger = logging.getLogger(__name__)

BUG_ANALYSIS = "bug analysis"
CODE_ANALYSIS = "code analysis"
SUGGESTION_GENERATION = "suggestion generation"

BUG_SYSTEM_PROMPT = (
    "You are an expert software engineer specializing in bug analysis and "
    "debugging. Provide accurate, actionable insights based on the bug report."
)

CODE_SYSTEM_PROMPT = (
    "You are an expert software engineer specializing in code review and "
    "analysis. Provide constructive, actionable feedback to improve code quality."
)

SUGGESTION_SYSTEM_PROMPT = (
    "You are an expert software engineer providing code improvement "
    "suggestions. Focus on practical, implementable recommendations."
)

BUG_ANALYSIS_PROMPT = """\
As a senior software engineer, analyze the following bug report and provide \
structured insights.

Title: {title}
Description: {description}
{stack_trace_section}
Respond ONLY with valid JSON in this exact structure:
{{
  "category": "<e.g. 'UI/UX', 'Performance', 'Logic', 'Security', 'Compatibility'>",
  "severity": "<e.g. 'Low', 'Medium', 'High', 'Critical'>",
  "possibleCauses": ["<possible root cause>", ...],
  "suggestedFixes": ["<specific fix recommendation>", ...],
  "confidence": <number from 0 to 1, confidence in the analysis>
}}
"""

CODE_ANALYSIS_PROMPT = """\
As a senior software engineer, analyze the following {language} code and \
provide structured feedback.

File: {file_path}
Code:
```{language}
{code}
```

Respond ONLY with valid JSON in this exact structure:
{{
  "qualityScore": <number from 0 to 100, overall code quality>,
  "issues": [
    {{
      "type": "<e.g. 'Performance', 'Maintainability', 'Security', 'Best Practices'>",
      "severity": "<e.g. 'Low', 'Medium', 'High'>",
      "line": <line number, 0 if general>,
      "message": "<description of the issue>",
      "suggestion": "<specific fix recommendation>"
    }}
  ],
  "suggestions": ["<general improvement suggestion>", ...],
  "metrics": {{
    "complexity": <number from 1 to 10>,
    "maintainability": <number from 1 to 10>,
    "testability": <number from 1 to 10>
  }}
}}
"""

SUGGESTION_PROMPT = """\
As a senior software engineer, provide code improvement suggestions based on \
the following context.

Language: {language}
Context: {context}
Requirements: {requirements}

Respond ONLY with valid JSON in this exact structure:
{{
  "suggestions": ["<specific, actionable code improvement suggestion>", ...]
}}
"""


class AIAnalysisError(Exception):
    """Raised when an AI operation cannot produce a JSON object.

    ``operation`` names the failed request kind and ``cause`` holds the
    underlying exception, also chained as ``__cause__``.
    """

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"Failed to complete {operation} with AI"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


def build_bug_prompt(
    title: str, description: str, stack_trace: Optional[str] = None
) -> str:
    stack_trace_section = f"Stack Trace: {stack_trace}\n" if stack_trace else ""
    return BUG_ANALYSIS_PROMPT.format(
        title=title,
        description=description,
        stack_trace_section=stack_trace_section,
    )


def build_code_prompt(code: str, language: str, file_path: str) -> str:
    return CODE_ANALYSIS_PROMPT.format(code=code, language=language, file_path=file_path)


def build_suggestion_prompt(context: str, language: str, requirements: str) -> str:
    return SUGGESTION_PROMPT.format(
        context=context, language=language, requirements=requirements
    )


class AIAnalyzer:
    """Turns completion responses into validated result models.

    Every operation makes exactly one completion call. A failed call or a
    response that is not a JSON object raises :class:`AIAnalysisError`;
    anything else is defaulted and clamped by the result schema.
    """

    def __init__(self, completion: CompletionClient) -> None:
        self._completion = completion

    async def analyze_bug(
        self, title: str, description: str, stack_trace: Optional[str] = None
    ) -> BugAnalysisResult:
        payload = await self._request(
            BUG_ANALYSIS,
            system=BUG_SYSTEM_PROMPT,
            prompt=build_bug_prompt(title, description, stack_trace),
            temperature=0.3,
        )
        return normalize(BugAnalysisResult, payload)

    async def analyze_code(
        self, code: str, language: str, file_path: str
    ) -> CodeAnalysisResult:
        payload = await self._request(
            CODE_ANALYSIS,
            system=CODE_SYSTEM_PROMPT,
            prompt=build_code_prompt(code, language, file_path),
            temperature=0.3,
        )
        return normalize(CodeAnalysisResult, payload)

    async def generate_suggestions(
        self, context: str, language: str, requirements: str
    ) -> List[str]:
        payload = await self._request(
            SUGGESTION_GENERATION,
            system=SUGGESTION_SYSTEM_PROMPT,
            prompt=build_suggestion_prompt(context, language, requirements),
            temperature=0.4,
        )
        return normalize(SuggestionList, payload).suggestions

    async def _request(
        self, operation: str, *, system: str, prompt: str, temperature: float
    ) -> dict:
        logger.debug("Requesting %s (temperature=%.1f)", operation, temperature)
        try:
            text = await self._completion.complete(
                system=system, prompt=prompt, temperature=temperature
            )
        except Exception as exc:
            logger.error("Completion call failed during %s: %s", operation, exc)
            raise AIAnalysisError(operation, exc) from exc

        try:
            payload = json.loads(text)
        except (TypeError, ValueError, RecursionError) as exc:
            logger.error("Response for %s is not valid JSON: %s", operation, exc)
            raise AIAnalysisError(operation, exc) from exc

        if not isinstance(payload, dict):
            exc = ValueError(
                f"expected a JSON object, got {type(payload).__name__}"
            )
            logger.error("Response for %s is not a JSON object", operation)
            raise AIAnalysisError(operation, exc) from exc

        return payload
