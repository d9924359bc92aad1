"""Structured payloads returned by the recommendation engine."""

from typing import Literal

from pydantic import BaseModel, Field


class MacroBreakdown(BaseModel):
    """Macronutrients in grams."""

    protein: int = Field(ge=0)
    carbs: int = Field(ge=0)
    fat: int = Field(ge=0)


class TargetRecommendation(BaseModel):
    """Daily calorie and macro targets with narrative."""

    calorie_target: int = Field(gt=0)
    macro_targets: MacroBreakdown
    explanation: str
    tips: list[str]
    warnings: list[str] = Field(default_factory=list)


class MealSuggestion(BaseModel):
    """A single meal idea for a slot."""

    name: str = Field(min_length=1)
    description: str
    estimated_calories: int = Field(ge=0)
    prep_time: int = Field(ge=0)
    difficulty: Literal["easy", "medium", "hard"]
    ingredients: list[str]
    benefits: list[str]
    macros: MacroBreakdown | None = None


class MealSuggestions(BaseModel):
    """Suggestions for one meal slot."""

    meal_type: str
    suggestions: list[MealSuggestion]


class ProgressAnalysis(BaseModel):
    """Coaching insights about recent progress."""

    insights: list[str]
    recommendations: list[str]
    motivation: str
