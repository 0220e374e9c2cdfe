from .logger import EvalLogger

__all__ = ["EvalLogger"]
