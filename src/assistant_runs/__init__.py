"""Assistant runs server: OpenAI-compatible run lifecycle controller"""

__version__ = "0.1.0"
