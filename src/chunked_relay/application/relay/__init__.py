"""Relay engine components."""

from chunked_relay.application.relay.chunk_assembler import ChunkAssembler
from chunked_relay.application.relay.classification import classify_content
from chunked_relay.application.relay.continuation_trigger import ContinuationTrigger
from chunked_relay.application.relay.deadline import DeadlineScheduler, ExecutionWindow
from chunked_relay.application.relay.engine import RelayEngine, RelayEngineOptions
from chunked_relay.application.relay.finalizer import Finalizer
from chunked_relay.application.relay.part_uploader import PartUploader
from chunked_relay.application.relay.progress import ProgressReporter, format_size

__all__ = [
    "ChunkAssembler",
    "ContinuationTrigger",
    "DeadlineScheduler",
    "ExecutionWindow",
    "Finalizer",
    "PartUploader",
    "ProgressReporter",
    "RelayEngine",
    "RelayEngineOptions",
    "classify_content",
    "format_size",
]
