"""Logs domain — reads, writes, export and repair over Firestore."""

from catlogs.logs.backend import create_firestore_client
from catlogs.logs.export import LogExporter
from catlogs.logs.query import LogQueryService
from catlogs.logs.repair import LevelRepair
from catlogs.logs.writer import ActivityWriter
from catlogs.logs.writer import LogWriter

__all__ = [
    "ActivityWriter",
    "LevelRepair",
    "LogExporter",
    "LogQueryService",
    "LogWriter",
    "create_firestore_client",
]
