"""In-memory data stores backing the service when MongoDB is disabled."""

from typing import Dict

# Raw JSON completion records keyed by storage key.
completion_records: Dict[str, str] = {}
