"""Repair loop driven by build failures."""

from .repair import LoopState, RepairLoop, build_repair_prompt

__all__ = ["LoopState", "RepairLoop", "build_repair_prompt"]
