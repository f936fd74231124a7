# engine/orchestrator.py

import traceback
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from openai import OpenAI, OpenAIError, RateLimitError, APITimeoutError, APIStatusError

from .errors import OrchestratorError
from .evaluation import parse_evaluation
from .models import EvaluationResult
from .prompts import (
    EVALUATION_PERSONA, EVALUATION_SCHEMA,
    build_evaluation_prompt, build_theme_validation_prompt,
)

AGENT_RESPONSE_TEMP = 0.7
EVALUATION_TEMP = 0.2
MAX_TOKENS = 1500
EVALUATION_MAX_TOKENS = 2000


class Orchestrator(ABC):
    """The language model behind the simulation. History is a list of {"role", "content"} dicts."""

    @abstractmethod
    def continue_turn(self, system_instruction: str, history: List[Dict[str, str]], message: str) -> str:
        """Returns the model's next turn. Raises OrchestratorError on any failure."""

    @abstractmethod
    def evaluate(self, transcript: str) -> EvaluationResult:
        """Returns a validated evaluation of the transcript. Raises OrchestratorError on any failure."""

    def validate_theme(self, theme: str) -> bool:
        return True


class OpenAIOrchestrator(Orchestrator):
    def __init__(self, api_key: str = "", model: str = "gpt-4o", evaluation_model: str = "gpt-4o",
                 theme_model: str = "gpt-4o-mini", timeout: float = 60.0, client: Optional[OpenAI] = None):
        self.model = model
        self.evaluation_model = evaluation_model
        self.theme_model = theme_model
        self.client = client
        if self.client is None:
            if not api_key:
                print("WARNING: OPENAI_API_KEY not set. Simulation turns will fail until it is configured.")
            else:
                # Turns are never retried automatically, so no client-side retries either
                self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def _complete(self, agent_name: str, messages: List[Dict[str, str]], model: str,
                  temperature: float, max_tokens: int, response_format: Optional[dict] = None) -> str:
        if not self.client:
            raise OrchestratorError(f"LLM call skipped for {agent_name}: Client not initialized.")

        request_params = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            request_params["response_format"] = response_format

        try:
            completion = self.client.chat.completions.create(**request_params)
        except RateLimitError as e:
            print(f"[Orchestrator] ERROR: OpenAI Rate Limit Exceeded for {agent_name}. {e}")
            raise OrchestratorError(f"{agent_name}: rate limited") from e
        except APITimeoutError as e:
            print(f"[Orchestrator] ERROR: OpenAI Timeout Error for {agent_name}: {e}")
            raise OrchestratorError(f"{agent_name}: request timed out") from e
        except APIStatusError as e:
            print(f"[Orchestrator] ERROR: OpenAI API Error for {agent_name}: Status={e.status_code}, Message={e.message}")
            raise OrchestratorError(f"{agent_name}: API error {e.status_code}") from e
        except OpenAIError as e:
            print(f"[Orchestrator] ERROR: OpenAI error for {agent_name}: {type(e).__name__} - {e}")
            raise OrchestratorError(f"{agent_name}: {type(e).__name__}") from e

        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError) as e:
            print(f"[Orchestrator] ERROR: Malformed completion for {agent_name}: {e}")
            print(traceback.format_exc())
            raise OrchestratorError(f"{agent_name}: malformed completion") from e
        return (content or "").strip()

    def continue_turn(self, system_instruction: str, history: List[Dict[str, str]], message: str) -> str:
        messages = [{"role": "system", "content": system_instruction}]
        messages.extend(history)
        messages.append({"role": "user", "content": message})
        response_text = self._complete("Stakeholders", messages, self.model, AGENT_RESPONSE_TEMP, MAX_TOKENS)
        return response_text or "(Received empty response from the simulation engine)"

    def evaluate(self, transcript: str) -> EvaluationResult:
        messages = [
            {"role": "system", "content": EVALUATION_PERSONA},
            {"role": "user", "content": build_evaluation_prompt(transcript)},
        ]
        response_format = {
            "type": "json_schema",
            "json_schema": {"name": "evaluation_result", "strict": True, "schema": EVALUATION_SCHEMA},
        }
        raw_response = self._complete("EvaluationEngine", messages, self.evaluation_model,
                                      EVALUATION_TEMP, EVALUATION_MAX_TOKENS, response_format)
        try:
            return parse_evaluation(raw_response)
        except OrchestratorError as e:
            print(f"[Orchestrator] ERROR: {e}\nRaw Response Snippet:\n{(raw_response or '')[:500]}")
            raise

    def validate_theme(self, theme: str) -> bool:
        """Asks a small model whether the theme is on-topic. Any failure accepts the theme."""
        messages = [{"role": "user", "content": build_theme_validation_prompt(theme)}]
        try:
            answer = self._complete("ThemeValidator", messages, self.theme_model, 0.0, 5)
        except OrchestratorError as e:
            print(f"[Orchestrator] WARNING: Theme validation failed, accepting theme: {e}")
            return True
        return answer.strip().strip(".").upper() == "YES"
