"""Turn/action processing helpers.

This package centralizes validation + rotation so every game type, human or bot
driven, flows through the same pipeline.
"""
