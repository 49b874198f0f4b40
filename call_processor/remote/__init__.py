"""Remote recording lookup and transfer modules."""

from call_processor.remote.fetcher import ResilientFetcher
from call_processor.remote.interface import FetchResult, RemoteFileConnector
from call_processor.remote.locator import RecordingLocator

__all__ = [
    "FetchResult",
    "RecordingLocator",
    "RemoteFileConnector",
    "ResilientFetcher",
]
