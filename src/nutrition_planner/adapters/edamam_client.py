"""Edamam Recipe Search API client."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import httpx


class EdamamClient(Protocol):
    """Interface for Edamam recipe catalog interactions."""

    async def search_recipes(  # noqa: PLR0913
        self,
        query: str,
        *,
        meal_types: Sequence[str] = (),
        diet_labels: Sequence[str] = (),
        health_labels: Sequence[str] = (),
        calories: tuple[int, int] | None = None,
        limit: int = 10,
    ) -> dict[str, object]:
        """Search recipes and return raw API data."""

    async def get_recipe(self, recipe_id: str) -> dict[str, object]:
        """Fetch one recipe by id and return its raw `recipe` object."""


@dataclass
class HttpxEdamamClient(EdamamClient):
    """HTTPX-backed Edamam client."""

    app_id: str
    app_key: str
    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 10

    @classmethod
    def create(
        cls, app_id: str, app_key: str, base_url: str, timeout: float = 10
    ) -> "HttpxEdamamClient":
        """Create an Edamam client with a managed httpx session."""
        return cls(
            app_id=app_id,
            app_key=app_key,
            base_url=base_url,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def search_recipes(  # noqa: PLR0913
        self,
        query: str,
        *,
        meal_types: Sequence[str] = (),
        diet_labels: Sequence[str] = (),
        health_labels: Sequence[str] = (),
        calories: tuple[int, int] | None = None,
        limit: int = 10,
    ) -> dict[str, object]:
        """Search public recipes."""
        params: dict[str, object] = {
            **self._auth_params(),
            "q": query,
            "from": 0,
            "to": limit,
        }
        if meal_types:
            params["mealType"] = list(meal_types)
        if diet_labels:
            params["diet"] = list(diet_labels)
        if health_labels:
            params["health"] = list(health_labels)
        if calories is not None:
            params["calories"] = f"{calories[0]}-{calories[1]}"
        response = await self.http_client.get(
            f"{self.base_url}/recipes/v2", params=params, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    async def get_recipe(self, recipe_id: str) -> dict[str, object]:
        """Fetch one recipe by id."""
        response = await self.http_client.get(
            f"{self.base_url}/recipes/v2/{recipe_id}",
            params=self._auth_params(),
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()["recipe"]

    def _auth_params(self) -> dict[str, str]:
        return {"type": "public", "app_id": self.app_id, "app_key": self.app_key}

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
