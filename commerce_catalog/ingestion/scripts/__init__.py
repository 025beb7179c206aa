"""
Executable scripts for catalog conversion.
"""
