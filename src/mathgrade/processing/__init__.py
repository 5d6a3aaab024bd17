"""
Processing: durable job queue, worker and its collaborators.
"""

from mathgrade.processing.blob import FileBlobFetcher, HttpBlobFetcher, RoutingBlobFetcher
from mathgrade.processing.interfaces import BlobFetcher, ResultSink, SubmissionPayload, SubmissionSource
from mathgrade.processing.queue import ProcessingQueue
from mathgrade.processing.store import JsonFileStore
from mathgrade.processing.worker import QueueWorker

__all__ = [
    'BlobFetcher',
    'FileBlobFetcher',
    'HttpBlobFetcher',
    'JsonFileStore',
    'ProcessingQueue',
    'QueueWorker',
    'ResultSink',
    'RoutingBlobFetcher',
    'SubmissionPayload',
    'SubmissionSource',
]
