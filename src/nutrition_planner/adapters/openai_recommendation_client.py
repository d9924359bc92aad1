"""OpenAI Responses API client for nutrition recommendations."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from nutrition_planner.services.recommendations import RecommendationClient


@dataclass
class OpenAIRecommendationClient(RecommendationClient):
    """Recommendation client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIRecommendationClient":
        """Create an OpenAI recommendation client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def generate_json(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        instructions: str,
        prompt: str,
        schema_name: str,
        schema: dict[str, object],
    ) -> dict[str, object]:
        """Call OpenAI Responses API with structured outputs."""
        request_payload = _base_payload(
            model, reasoning_effort, store, instructions, prompt
        )
        request_payload["text"] = {
            "format": {
                "type": "json_schema",
                "name": schema_name,
                "strict": True,
                "schema": schema,
            }
        }
        output_text = await self._respond(request_payload)
        decoded = json.loads(output_text)
        if not isinstance(decoded, dict):
            raise ValueError("OpenAI returned a non-object JSON payload")
        return decoded

    async def generate_text(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        instructions: str,
        prompt: str,
    ) -> str:
        """Call OpenAI Responses API for free text."""
        request_payload = _base_payload(
            model, reasoning_effort, store, instructions, prompt
        )
        return await self._respond(request_payload)

    async def _respond(self, request_payload: dict[str, object]) -> str:
        response = await self.client.responses.create(**request_payload)
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return output_text

    async def close(self) -> None:
        """Close the underlying OpenAI client."""
        await self.client.close()


def _base_payload(
    model: str,
    reasoning_effort: str | None,
    store: bool,
    instructions: str,
    prompt: str,
) -> dict[str, object]:
    payload: dict[str, object] = {
        "model": model,
        "instructions": instructions,
        "input": [
            {
                "role": "user",
                "content": [{"type": "input_text", "text": prompt}],
            }
        ],
        "store": store,
    }
    if reasoning_effort:
        payload["reasoning"] = {"effort": reasoning_effort}
    return payload
