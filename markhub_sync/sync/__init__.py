"""Forward sync, reverse sync and the folder recommendation workflow."""

from markhub_sync.sync.forward import ForwardSyncEngine
from markhub_sync.sync.local_resolver import LocalFolderPathResolver
from markhub_sync.sync.messaging import MessageAck, MessageType, NullPresenter, UIMessage
from markhub_sync.sync.models import BatchSyncResult, ForwardSyncOutcome, SyncResult
from markhub_sync.sync.recommendation import RecommendationWorkflow, WorkflowError
from markhub_sync.sync.reverse import ReverseSyncManager
from markhub_sync.sync.service import SyncService

__all__ = [
    "BatchSyncResult",
    "ForwardSyncEngine",
    "ForwardSyncOutcome",
    "LocalFolderPathResolver",
    "MessageAck",
    "MessageType",
    "NullPresenter",
    "RecommendationWorkflow",
    "ReverseSyncManager",
    "SyncResult",
    "SyncService",
    "UIMessage",
    "WorkflowError",
]
