#!/usr/bin/env python3
"""
LMC Compiler entry point.

Usage: python lmcc.py program.json [-o output] [-f listing|image] [-O KEY]... [--verbose]
"""

from lmcc.compiler import main

if __name__ == '__main__':
    main()
