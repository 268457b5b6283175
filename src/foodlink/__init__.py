"""FoodLink: entity resolution for restaurant, dish and attribute mentions."""

__version__ = "0.1.0"
