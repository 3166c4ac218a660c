"""
Recipe lookup against the Spoonacular API.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

import requests

from helpinghand.errors import RecipeLookupError
from shared.constants import RECIPE_RANKING, RECIPE_RESULT_COUNT
from shared.types import Meal

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds


class RecipeClient(Protocol):
    def find_by_ingredients(
        self,
        ingredients: str,
        number: int = RECIPE_RESULT_COUNT,
        ranking: int = RECIPE_RANKING,
    ) -> List[Meal]:
        ...


def _ingredient_names(entries: Optional[list]) -> List[str]:
    return [entry.get("name", "") for entry in entries or [] if entry.get("name")]


def parse_meal(payload: dict) -> Meal:
    return Meal(
        id=payload["id"],
        title=payload.get("title", ""),
        image_url=payload.get("image") or "",
        used_ingredients=_ingredient_names(payload.get("usedIngredients")),
        missed_ingredients=_ingredient_names(payload.get("missedIngredients")),
    )


class SpoonacularClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.spoonacular.com",
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def find_by_ingredients(
        self,
        ingredients: str,
        number: int = RECIPE_RESULT_COUNT,
        ranking: int = RECIPE_RANKING,
    ) -> List[Meal]:
        """
        Finds recipes that use the given ingredients.

        Args:
            ingredients (str): Comma separated ingredient names.
            number (int): Maximum number of recipes to return.
            ranking (int): 1 maximizes used ingredients, 2 minimizes missing ones.

        Returns:
            list[Meal]: Matching recipes in API order.

        Raises:
            RecipeLookupError: On transport errors, HTTP errors or a malformed body.
        """
        params = {
            "ingredients": ingredients,
            "number": number,
            "ranking": ranking,
            "apiKey": self.api_key,
        }
        try:
            response = requests.get(
                f"{self.base_url}/recipes/findByIngredients",
                params=params,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
            meals = [parse_meal(entry) for entry in payload]
        except requests.RequestException as e:
            raise RecipeLookupError(f"Recipe lookup failed: {e}") from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise RecipeLookupError(f"Unexpected recipe response: {e}") from e

        logger.info("Found %d recipes for ingredients=%s", len(meals), ingredients)
        return meals
