"""AWS SSM Parameter Store backend.

Change notification comes from a Kinesis stream of Parameter Store events;
the watch cursor is a shard iterator.
"""

from __future__ import annotations

import json
import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..core.errors import BackendError, DecodeError, NotFoundError, TransportError
from ..core.filters import matching_filter
from ..core.types import ConfigSnapshot, StopSignal, freeze

logger = logging.getLogger(__name__)

DEFAULT_STREAM_NAME = "confwatch"
LOCAL_ENDPOINT = "http://localhost:8001"


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


@contextmanager
def translate_errors(operation: str, cursor: Optional[str] = None) -> Iterator[None]:
    try:
        yield
    except ClientError as e:
        if _error_code(e) == "ParameterNotFound":
            raise NotFoundError(f"{operation}: {e}", cursor=cursor) from e
        raise TransportError(f"{operation} failed: {e}", cursor=cursor) from e
    except BotoCoreError as e:
        raise TransportError(f"{operation} failed: {e}", cursor=cursor) from e


@dataclass(frozen=True)
class ParameterChangeEvent:
    """Parameter Store change notification carried on the event stream."""

    id: str
    detail_type: str
    source: str
    time: str
    resources: List[str]
    name: str
    type: str
    operation: str

    @staticmethod
    def decode(data: bytes) -> "ParameterChangeEvent":
        try:
            raw = json.loads(data)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Invalid change event record: {e}") from e
        if not isinstance(raw, dict):
            raise DecodeError(f"Change event must be an object, got {type(raw).__name__}")
        detail = raw.get("detail") or {}
        if not isinstance(detail, dict):
            raise DecodeError("Change event 'detail' must be an object")
        return ParameterChangeEvent(
            id=str(raw.get("id", "")),
            detail_type=str(raw.get("detail-type", "")),
            source=str(raw.get("source", "")),
            time=str(raw.get("time", "")),
            resources=list(raw.get("resources") or []),
            name=str(detail.get("name", "")),
            type=str(detail.get("type", "")),
            operation=str(detail.get("operation", "")),
        )


class SsmBackend:
    """AWS SSM Parameter Store backend.

    Values come from the parameter store. Changes are detected by reading a
    Kinesis stream that receives Parameter Store change events; the watch
    cursor is the stream's shard iterator.
    """

    def __init__(
        self,
        ssm_client: Any,
        kinesis_client: Any,
        stream_name: str = DEFAULT_STREAM_NAME,
        delay: float = 5.0,
        poll_interval: float = 5.0,
        name: Optional[str] = None,
    ):
        self.ssm = ssm_client
        self.kinesis = kinesis_client
        self.stream_name = stream_name
        self.delay = delay
        self.poll_interval = poll_interval
        self.name = name or f"ssm:{stream_name}"

    @classmethod
    def from_session(
        cls,
        stream_name: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        **kwargs: Any,
    ) -> "SsmBackend":
        """Build clients from the standard AWS credential chain.

        ``SSM_LOCAL`` in the environment points the SSM client at a local
        emulator on port 8001.
        """
        session = boto3.session.Session(region_name=region)
        if session.get_credentials() is None:
            raise BackendError("No AWS credentials found")
        if endpoint_url is None and os.getenv("SSM_LOCAL"):
            logger.debug("SSM_LOCAL is set")
            endpoint_url = LOCAL_ENDPOINT
        return cls(
            session.client("ssm", endpoint_url=endpoint_url),
            session.client("kinesis"),
            stream_name=stream_name or DEFAULT_STREAM_NAME,
            **kwargs,
        )

    # ---- parameter store ----
    def _parameters_with_prefix(self, path: str) -> Dict[str, str]:
        params: Dict[str, str] = {}
        paginator = self.ssm.get_paginator("get_parameters_by_path")
        try:
            with translate_errors(f"GetParametersByPath {path}"):
                for page in paginator.paginate(Path=path, Recursive=True, WithDecryption=True):
                    for p in page.get("Parameters", []):
                        params[p["Name"]] = p["Value"]
        except TransportError as e:
            # names that are not paths are only reachable by exact lookup
            cause = e.__cause__
            if isinstance(cause, ClientError) and _error_code(cause) == "ValidationException":
                return {}
            raise
        return params

    def _parameter(self, name: str) -> Dict[str, str]:
        with translate_errors(f"GetParameter {name}"):
            resp = self.ssm.get_parameter(Name=name, WithDecryption=True)
        param = resp["Parameter"]
        return {param["Name"]: param["Value"]}

    def get_values(self, keys: Sequence[str]) -> ConfigSnapshot:
        values: Dict[str, str] = {}
        for key in keys:
            logger.debug("Processing key=%s", key)
            resp = self._parameters_with_prefix(key)
            if not resp:
                try:
                    resp = self._parameter(key)
                except NotFoundError:
                    logger.debug("Parameter %s not found", key)
                    resp = {}
            values.update(resp)
        return freeze(values)

    # ---- event stream ----
    def _latest_iterator(self) -> str:
        with translate_errors(f"DescribeStream {self.stream_name}"):
            desc = self.kinesis.describe_stream(StreamName=self.stream_name)
        shards = desc["StreamDescription"]["Shards"]
        if not shards:
            raise TransportError(f"Stream {self.stream_name} has no shards")
        shard_id = shards[0]["ShardId"]
        logger.debug("Trying to get shard iterator for %s", shard_id)
        with translate_errors(f"GetShardIterator {shard_id}"):
            out = self.kinesis.get_shard_iterator(
                StreamName=self.stream_name,
                ShardId=shard_id,
                ShardIteratorType="LATEST",
            )
        logger.debug("Got shard iterator %s", out["ShardIterator"])
        return out["ShardIterator"]

    def watch_prefix(
        self,
        prefix: str,
        keys: Sequence[str],
        cursor: str = "",
        stop: Optional[StopSignal] = None,
    ) -> str:
        if not cursor:
            cursor = self._latest_iterator()
        else:
            logger.debug("Using previous shard iterator %s", cursor)
        time.sleep(self.delay)

        # stop is only checked between fetches, never during one
        while stop is None or not stop.is_set():
            with translate_errors("GetRecords", cursor=cursor):
                out = self.kinesis.get_records(ShardIterator=cursor)
            next_cursor = out.get("NextShardIterator")
            if not next_cursor:
                raise TransportError(f"Shard of {self.stream_name} is closed", cursor=cursor)
            cursor = next_cursor
            records = out.get("Records", [])
            logger.debug("Received %d records", len(records))
            for record in records:
                try:
                    event = ParameterChangeEvent.decode(record.get("Data", b""))
                except DecodeError as e:
                    e.cursor = cursor
                    raise
                logger.debug("Record %s %s at %s", event.operation, event.name, event.time)
                if matching_filter(event.name, keys) is not None:
                    return cursor
            time.sleep(self.poll_interval)
        return cursor
