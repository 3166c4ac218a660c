from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import List

from helpinghand.db import ShoppingItemDao
from helpinghand.live import MutableState
from helpinghand.recipes import RecipeClient
from shared.types import Meal, ShoppingItem

logger = logging.getLogger(__name__)


class MealsViewModel:
    """Recipe suggestions for the checked shopping items."""

    def __init__(self, shopping_dao: ShoppingItemDao, recipes: RecipeClient):
        self.shopping_dao = shopping_dao
        self.recipes = recipes
        self.meals: MutableState[List[Meal]] = MutableState([])
        self.is_loading: MutableState[bool] = MutableState(False)

    async def fetch_meals_from_checked_items(self) -> List[Meal]:
        self.is_loading.value = True
        try:
            items = await asyncio.to_thread(self.shopping_dao.list_all)
            ingredients = [
                item.text.strip().lower() for item in items if item.is_checked
            ]
            if not ingredients:
                self.meals.value = []
                return []
            meals = await asyncio.to_thread(
                self.recipes.find_by_ingredients, ",".join(ingredients)
            )
            self.meals.value = meals
        except Exception:
            logger.exception("fetch_meals_from_checked_items: lookup failed")
            self.meals.value = []
        finally:
            self.is_loading.value = False
        return self.meals.value

    async def add_missing_ingredients(self, meal: Meal) -> List[ShoppingItem]:
        """
        Adds the meal's missing ingredients to the shopping list, skipping
        names already on it (case-insensitive), then shows them as used.
        """
        try:
            existing = {
                item.text.strip().lower()
                for item in await asyncio.to_thread(self.shopping_dao.list_all)
            }
            new_items = []
            for name in (n.strip() for n in meal.missed_ingredients):
                if name and name.lower() not in existing:
                    existing.add(name.lower())
                    new_items.append(ShoppingItem(text=name))
            if new_items:
                await asyncio.to_thread(self.shopping_dao.insert_all, new_items)
        except Exception:
            logger.exception("add_missing_ingredients: failed for meal %s", meal.id)
            return []

        self.meals.value = [
            dataclasses.replace(
                m,
                used_ingredients=m.used_ingredients + m.missed_ingredients,
                missed_ingredients=[],
            )
            if m.id == meal.id
            else m
            for m in self.meals.value
        ]
        return new_items
