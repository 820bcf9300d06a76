"""
JUNKER Scanner Modules

- DifferentialProber → CL.CL desync via baseline / variant-A / variant-B
"""

from .differential import DifferentialProber, build_request, with_default_headers

__all__ = ["DifferentialProber", "build_request", "with_default_headers"]
