from .ids import generate_id, to_unix

__all__ = ["generate_id", "to_unix"]
