from .models import Food, FoodEntry, UNASSIGNED_ID

__all__ = ["Food", "FoodEntry", "UNASSIGNED_ID"]
