from .weekly import InvalidDateError, MoodInsightsEngine

__all__ = ["InvalidDateError", "MoodInsightsEngine"]
