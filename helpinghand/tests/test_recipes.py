import unittest
from unittest.mock import MagicMock, patch

import requests

from helpinghand.errors import RecipeLookupError
from helpinghand.recipes import SpoonacularClient
from shared.types import Meal

SAMPLE_RESPONSE = [
    {
        "id": 632660,
        "title": "Apricot Glazed Apple Tart",
        "image": "https://img.spoonacular.com/recipes/632660-312x231.jpg",
        "usedIngredients": [{"id": 9003, "name": "apples"}],
        "missedIngredients": [{"id": 9021, "name": "apricot preserves"}, {"id": 1001, "name": "butter"}],
    }
]


class SpoonacularClientTests(unittest.TestCase):
    def setUp(self):
        self.client = SpoonacularClient(api_key="test-key", base_url="https://recipes.test/")

    @patch("helpinghand.recipes.requests.get")
    def test_find_by_ingredients(self, mock_get):
        mock_get.return_value = MagicMock(status_code=200)
        mock_get.return_value.json.return_value = SAMPLE_RESPONSE

        meals = self.client.find_by_ingredients("apples,flour")

        mock_get.assert_called_once_with(
            "https://recipes.test/recipes/findByIngredients",
            params={"ingredients": "apples,flour", "number": 5, "ranking": 2, "apiKey": "test-key"},
            timeout=30,
        )
        self.assertEqual(
            meals,
            [
                Meal(
                    id=632660,
                    title="Apricot Glazed Apple Tart",
                    image_url="https://img.spoonacular.com/recipes/632660-312x231.jpg",
                    used_ingredients=["apples"],
                    missed_ingredients=["apricot preserves", "butter"],
                )
            ],
        )

    @patch("helpinghand.recipes.requests.get")
    def test_http_error_raises_lookup_error(self, mock_get):
        mock_get.return_value.raise_for_status.side_effect = requests.HTTPError("402 quota")
        with self.assertRaises(RecipeLookupError):
            self.client.find_by_ingredients("apples")

    @patch("helpinghand.recipes.requests.get", side_effect=requests.ConnectionError("offline"))
    def test_transport_error_raises_lookup_error(self, mock_get):
        with self.assertRaises(RecipeLookupError):
            self.client.find_by_ingredients("apples")

    @patch("helpinghand.recipes.requests.get")
    def test_malformed_body_raises_lookup_error(self, mock_get):
        mock_get.return_value.json.return_value = [{"title": "no id"}]
        with self.assertRaises(RecipeLookupError):
            self.client.find_by_ingredients("apples")


if __name__ == "__main__":
    unittest.main()
