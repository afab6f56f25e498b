"""
Core dispatcher components.

This module contains the message model, header accumulation, option
merging, batch partitioning and the dispatcher that ties them together.
"""

from batchclient.core.message import Headers, Request, Response, Stream
from batchclient.core.headers import HeaderAccumulator
from batchclient.core.options import merge_options, request_options
from batchclient.core.batch import Batch, partition
from batchclient.core.dispatcher import Dispatcher, Operation

__all__ = [
    "Headers",
    "Request",
    "Response",
    "Stream",
    "HeaderAccumulator",
    "merge_options",
    "request_options",
    "Batch",
    "partition",
    "Dispatcher",
    "Operation",
]
