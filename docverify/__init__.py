"""Document verification engine.

Drives submitted certificates and identity documents through external
checks, scores the combined evidence, queues ambiguous outcomes for manual
review and records every decision in a hash-chained audit log.
"""

__version__ = "0.1.0"
