"""Router package exports."""

from . import auth, fun_phrases, grammar, health, review, stories, vocabulary

__all__ = [
    "auth",
    "fun_phrases",
    "grammar",
    "health",
    "review",
    "stories",
    "vocabulary",
]
