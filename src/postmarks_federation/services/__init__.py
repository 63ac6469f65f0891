from .activitypub import ActivityBuilder, synthesize_activity
from .collections import CollectionRenderer
from .delivery import ActivityDeliverer, DeliveryOutcome
from .federation import BroadcastResult, FederationService
from .resolver import InboxNotFoundError, RemoteActorResolver

__all__ = [
    "ActivityBuilder",
    "ActivityDeliverer",
    "BroadcastResult",
    "CollectionRenderer",
    "DeliveryOutcome",
    "FederationService",
    "InboxNotFoundError",
    "RemoteActorResolver",
    "synthesize_activity",
]
