from fantasy_ingest.db.models.ingested_snapshot import IngestedSnapshot

__all__ = [
    "IngestedSnapshot",
]
