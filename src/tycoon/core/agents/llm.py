"""LLM-backed decision source using an OpenAI-compatible API (vLLM/Ollama)."""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from tycoon.core.agents.base import (
    AgentProfile,
    Decision,
    DecisionSource,
    DecisionType,
    candidate_actions,
)
from tycoon.core.exceptions import LLMError
from tycoon.settings import LLMSettings, get_llm_settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are playing a property-trading board game. Your dice have already been rolled "
    "and rent, taxes and cards have been settled. Pick exactly one of the candidate actions."
)

STRATEGY_PROMPTS = {
    "aggressive": "Play aggressively: buy and build whenever you can afford it.",
    "balanced": "Play a balanced game: grow your portfolio but keep a cash cushion.",
    "defensive": "Play defensively: preserve cash and avoid any risk of bankruptcy.",
}


class LLMAgent(DecisionSource):
    """
    Decision source that asks a language model to pick among candidate actions.

    The agent:
    1. Builds the candidate list from the decision snapshot
    2. Constructs a prompt with instructions, strategy, state and candidates
    3. Queries the LLM via the /chat/completions endpoint
    4. Parses the JSON reply and validates it against the candidates
    5. Retries with error feedback, then falls back to end_turn

    Configuration via environment variables (see LLMSettings in `settings.py`).
    """

    kind = "llm"

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the LLM agent.

        Args:
            settings: LLM settings (defaults to the cached environment settings).
            client: Optional injected AsyncClient (tests use httpx.MockTransport).
        """
        self.settings = settings or get_llm_settings()
        self._client = client
        self._owns_client = client is None
        self._decision_count = 0

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.timeout_seconds)
        return self._client

    async def decide(self, snapshot: Dict[str, Any], profile: AgentProfile) -> Decision:
        start_time = time.time()
        self._decision_count += 1
        candidates = candidate_actions(snapshot, trade_chance=0.0)
        prompt = self._build_prompt(snapshot, profile, candidates)

        raw_response = ""
        error_msg: Optional[str] = None
        decision: Optional[Decision] = None

        for attempt in range(self.settings.max_retries):
            try:
                if attempt == 0:
                    raw_response = await self._query_llm(prompt)
                else:
                    logger.info(f"LLM agent {profile.name}: retry attempt {attempt + 1}/{self.settings.max_retries}")
                    raw_response = await self._query_llm(
                        self._build_retry_prompt(prompt, raw_response, error_msg or "invalid response")
                    )
                decision, error_msg = self._parse_response(raw_response, candidates)
                if decision is not None:
                    break
                logger.warning(f"LLM parse failed for {profile.name} (attempt {attempt + 1}): {error_msg}")
            except (httpx.HTTPError, LLMError) as e:
                error_msg = str(e)
                logger.warning(f"LLM error for {profile.name} (attempt {attempt + 1}): {error_msg}")

        if decision is None:
            decision = Decision.end_turn(
                confidence=0.1,
                reasoning=f"Fallback after LLM failure: {error_msg}",
            )

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"LLM agent {profile.name} chose {decision.type.value} "
            f"(confidence={decision.confidence:.2f}, time={elapsed_ms}ms)"
        )
        return decision

    def _build_prompt(self, snapshot: Dict[str, Any], profile: AgentProfile, candidates: List[Decision]) -> str:
        """Build the full prompt for the LLM."""
        state = {
            "round": snapshot["round_number"],
            "me": snapshot["current_player"],
            "opponents": [p for p in snapshot["players"] if p["id"] != snapshot["current_player"]["id"]],
            "my_properties": [p for p in snapshot["properties"] if p["owner_id"] == snapshot["current_player"]["id"]],
            "last_roll": snapshot.get("turn"),
        }
        options = [{"type": c.type.value, "data": c.data} for c in candidates]
        return "\n".join([
            SYSTEM_PROMPT,
            "",
            STRATEGY_PROMPTS.get(profile.risk_profile, STRATEGY_PROMPTS["balanced"]),
            "",
            "## Game State",
            "```json",
            json.dumps(state, indent=2, default=str),
            "```",
            "",
            "## Candidate Actions",
            "```json",
            json.dumps(options, indent=2),
            "```",
            "",
            'Respond with ONLY a JSON object: {"type": ..., "data": {...}, "confidence": 0-1, "rationale": "..."}',
        ])

    def _build_retry_prompt(self, original_prompt: str, bad_response: str, error: str) -> str:
        """Build retry prompt with error feedback."""
        return f"""{original_prompt}

## IMPORTANT: Your previous response was INVALID!

**Error:** {error}

**Your invalid response was:**
{bad_response[:500] if bad_response else "(empty response)"}

Respond with ONLY a valid JSON object, no text before or after it, for example:
{{"type": "end_turn", "data": {{}}, "confidence": 0.5, "rationale": "Nothing worth doing"}}"""

    async def _query_llm(self, prompt: str) -> str:
        """Query the LLM using OpenAI-compatible chat completions API."""
        url = f"{(self.settings.base_url or '').rstrip('/')}/chat/completions"
        payload = {
            "model": self.settings.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.settings.max_tokens,
            "temperature": 0.3,
        }
        headers: Dict[str, str] = {}
        if self.settings.api_key is not None:
            headers["Authorization"] = f"Bearer {self.settings.api_key.get_secret_value()}"

        response = await self.client.post(
            url,
            json=payload,
            headers=headers or None,
            timeout=self.settings.timeout_seconds,
        )
        response.raise_for_status()
        result = response.json()

        choices = result.get("choices") or []
        if not choices:
            raise LLMError("Invalid LLM response format")
        content = (choices[0].get("message", {}).get("content") or "").strip()
        if not content:
            raise LLMError("LLM returned empty response")
        return content

    def _parse_response(self, raw_response: str, candidates: List[Decision]) -> Tuple[Optional[Decision], Optional[str]]:
        """
        Parse the LLM reply and match it to a candidate.

        Returns:
            (Decision, None) on success, (None, error message) otherwise.
        """
        text = raw_response.strip()
        json_start = text.find("{")
        json_end = text.rfind("}") + 1
        if json_start == -1 or json_end == 0:
            return None, f"No JSON found in response: {text[:100]}"

        try:
            data = json.loads(text[json_start:json_end])
        except json.JSONDecodeError as e:
            return None, f"JSON parse error: {e}"

        type_str = str(data.get("type") or data.get("action_type") or "").lower()
        try:
            decision_type = DecisionType(type_str)
        except ValueError:
            return None, f"Invalid action type: {type_str!r}"

        params = data.get("data") or {}
        for candidate in candidates:
            if candidate.type is not decision_type:
                continue
            if "property_id" in candidate.data and candidate.data["property_id"] != params.get("property_id"):
                continue
            try:
                confidence = float(data.get("confidence", 0.5))
            except (TypeError, ValueError):
                confidence = 0.5
            return Decision(
                candidate.type,
                dict(candidate.data),
                confidence=max(0.0, min(confidence, 1.0)),
                reasoning=str(data.get("rationale", ""))[:200],
            ), None

        return None, f"Action {type_str} with {params} is not a candidate"

    async def aclose(self) -> None:
        """Clean up resources."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
