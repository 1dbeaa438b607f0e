"""Ingestion layer.

Adapters that turn stream messages and REST snapshots from the server into
normalized :class:`pysignalk.state.events.IngestionEvent` objects.
"""

__all__: list[str] = []
