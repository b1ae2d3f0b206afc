"""State layer.

Owns the published snapshots: the refresh scheduler swaps them wholesale,
and the mutation coordinator is the only writer of speculative patches.
"""
