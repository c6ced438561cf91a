"""Service layer: request building, stream collection, projections and batch runs."""

from agent_runner.services.cancellation import CancellationToken
from agent_runner.services.collector import CollectedStream, StreamCollector
from agent_runner.services.formatters import format_projection
from agent_runner.services.request_builder import SessionRequest, SessionRequestBuilder
from agent_runner.services.runner import AgentBatchRunner

__all__ = [
    'AgentBatchRunner',
    'CancellationToken',
    'CollectedStream',
    'SessionRequest',
    'SessionRequestBuilder',
    'StreamCollector',
    'format_projection',
]
