"""
JUNKER — Differential HTTP Request Smuggling Scanner

Probes front-end/back-end HTTP parsing stacks for disagreements about
Content-Length framing by sending byte-level mutated request triples
and comparing the raw responses.
"""

__version__ = "1.0.0"
