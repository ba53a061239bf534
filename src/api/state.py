from typing import Optional

from api.pipeline import MessagePipeline
from integration.waha_client import WahaClient
from storage.assignment_store import AssignmentStore

# Global instances initialized at startup
store: Optional[AssignmentStore] = None
pipeline: Optional[MessagePipeline] = None
waha_client: Optional[WahaClient] = None
