"""Chat model base classes, stream assembly and the error classifiers."""

from agentcore.providers.base import (
    BaseChatModel,
    StreamAssembler,
    get_retry_after,
    is_context_overflow,
    is_retryable_error,
)
from agentcore.providers.proxy import ProxyEvent, ProxyEventType, ProxyModel, ProxyStreamFn

__all__ = [
    "BaseChatModel",
    "ProxyEvent",
    "ProxyEventType",
    "ProxyModel",
    "ProxyStreamFn",
    "StreamAssembler",
    "get_retry_after",
    "is_context_overflow",
    "is_retryable_error",
]
