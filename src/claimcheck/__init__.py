"""
claimcheck: transparent claim-check offload for size-limited message queues.

Oversized queue messages are stored in blob storage and replaced on the
queue by a small pointer; receivers get the original body back.
"""

__version__ = "0.1.0"
