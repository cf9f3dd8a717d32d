"""
cardcycle: spaced-repetition review scheduling for flashcard decks.
"""

__version__ = "0.1.0"
