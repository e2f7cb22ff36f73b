"""
LMC Compiler (lmcc) - Lowers a small imperative IR to Little Man Computer programs.

This package provides the mailbox allocator, instruction emitter,
optimization pipeline and assembler for the 100-mailbox LMC target.
"""

__version__ = "0.1.0"
__author__ = "LMC Compiler Project"
