from .door import door_api

__all__ = ["door_api"]
