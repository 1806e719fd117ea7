"""stampede - a process entrypoint for long-running Python services.

Timestamps every console line, registers loader extensions, and hands the
process to the application module. Optionally fans out into sibling
worker processes instead of relying on an external process manager.
"""

__version__ = "0.1.0"
