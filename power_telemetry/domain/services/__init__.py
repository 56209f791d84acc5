from . import period_calculator

__all__ = ["period_calculator"]
