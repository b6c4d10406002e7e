"""Version storage backends.

This package persists version snapshots locally or through a remote API.
Both backends share one contract, so derived operations work on either.
"""
