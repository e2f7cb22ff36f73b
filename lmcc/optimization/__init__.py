"""
Optimization passes for LMC code.
"""

from .passes import (
    OptimizationPass,
    ThrashingPass,
    CleanPass,
    BackwardPropagationPass,
    OptimizationPipeline,
)

__all__ = [
    'OptimizationPass',
    'ThrashingPass',
    'CleanPass',
    'BackwardPropagationPass',
    'OptimizationPipeline',
]
