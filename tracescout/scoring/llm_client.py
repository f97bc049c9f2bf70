"""OpenAI-backed Evaluator.

Implements the ``Evaluator`` protocol on top of the OpenAI chat completions
API in JSON mode. The SDK import is deferred to the first call (lazy
loading) so the rest of the package imports fine without an API key.

The client returns the response text untouched inside an
``UnvalidatedPayload``; parsing and validation belong to the stages.
"""

import logging
from typing import Any

from tracescout.scoring.config import ScoringConfig
from tracescout.scoring.evaluator import EvaluationTask, EvaluatorError, UnvalidatedPayload
from tracescout.scoring.prompts import SYSTEM_PROMPT, build_prompt

logger = logging.getLogger(__name__)


class LLMClient:
    """Evaluator that calls an OpenAI chat model.

    Features:
    - Lazy SDK initialization (import on first use)
    - Per-task token budgets from ScoringConfig
    - SDK errors wrapped in EvaluatorError; cancellation is never wrapped,
      so cancelling the awaiting task aborts the HTTP request

    Args:
        config: Scoring configuration with API key and model name.
    """

    def __init__(self, config: ScoringConfig | None = None) -> None:
        self._config = config or ScoringConfig()
        self._client: Any = None
        self._stats = {"calls": 0, "errors": 0}

    def _get_client(self) -> Any:
        """Lazy-initialize the OpenAI async client."""
        if self._client is None:
            import openai

            api_key = self._config.openai_api_key
            key_str = api_key.get_secret_value() if api_key else None
            self._client = openai.AsyncOpenAI(
                api_key=key_str,
                timeout=self._config.llm_timeout,
            )
        return self._client

    def _max_tokens(self, task: EvaluationTask) -> int:
        return {
            EvaluationTask.JUDGE: self._config.judge_max_tokens,
            EvaluationTask.REFINE: self._config.refine_max_tokens,
            EvaluationTask.RANK: self._config.rank_max_tokens,
            EvaluationTask.PLAN: self._config.plan_max_tokens,
        }[task]

    async def evaluate(
        self,
        task: EvaluationTask,
        items: list[dict[str, Any]],
        context: str | None = None,
    ) -> UnvalidatedPayload:
        """
        Run one evaluation task over a batch of items.

        Args:
            task: Which prompt to use.
            items: JSON-serializable item records.
            context: Optional free-text context from the user.

        Returns:
            The raw response text, tagged with the task.

        Raises:
            EvaluatorError: On API failure or an empty response.
        """
        prompt = build_prompt(
            task,
            items,
            target_market=self._config.target_market,
            context=context,
            max_context_chars=self._config.max_user_context,
        )
        self._stats["calls"] += 1
        logger.debug("Evaluator %s call with %d items", task.value, len(items))

        try:
            client = self._get_client()
            response = await client.chat.completions.create(
                model=self._config.openai_model,
                max_tokens=self._max_tokens(task),
                response_format={"type": "json_object"},
                messages=[
                    {
                        "role": "system",
                        "content": SYSTEM_PROMPT.format(target_market=self._config.target_market),
                    },
                    {"role": "user", "content": prompt},
                ],
            )
        except Exception as e:
            self._stats["errors"] += 1
            raise EvaluatorError(f"OpenAI API error: {e}") from e

        text = response.choices[0].message.content if response.choices else None
        if not text:
            self._stats["errors"] += 1
            raise EvaluatorError(f"LLM returned empty response for {task.value}")

        return UnvalidatedPayload(task=task, raw=text)

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)

    async def close(self) -> None:
        """Clean up the SDK client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
