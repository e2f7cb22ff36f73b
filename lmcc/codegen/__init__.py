"""Code generation: IR to symbolic LMC instructions."""

from .codegen import CodeGenerator

__all__ = ['CodeGenerator']
