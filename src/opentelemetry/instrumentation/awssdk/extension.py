# Copyright The OpenTelemetry Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import io
import logging
from typing import Any, Dict, Optional, Tuple

from botocore.response import StreamingBody

from opentelemetry.instrumentation.awssdk.mapping import (
    _FieldMapping,
    request_mappings,
    response_mappings,
)
from opentelemetry.instrumentation.awssdk.raw_value import RawValue
from opentelemetry.instrumentation.awssdk.serializer import Serializer
from opentelemetry.trace.span import Span
from opentelemetry.util.types import AttributeValue

_logger = logging.getLogger(__name__)

_BotoClientT = "botocore.client.BaseClient"
_BotoResultT = Dict[str, Any]
_AttributeMapT = Dict[str, AttributeValue]


class _AwsSdkCallContext:
    """Information about the invoked AWS service call.

    Args:
        service: the AWS service (e.g. s3, bedrock-runtime, ...) which is
            called
        service_id: the name of the service in proper casing
        operation: the called operation (e.g. ListBuckets, InvokeModel, ...)
        params: a dict of input parameters passed to the service operation.
        region: the AWS region in which the service call is made
        endpoint_url: the endpoint which the service operation is calling
        span_name: the name used to create the span.
    """

    def __init__(self, client: _BotoClientT, args: Tuple[str, Dict[str, Any]]):
        operation = args[0]
        try:
            params = args[1]
        except (IndexError, TypeError):
            _logger.warning("Could not get request params.")
            params = {}

        boto_meta = client.meta
        service_model = boto_meta.service_model

        self.service = service_model.service_name.lower()
        self.operation = operation
        self.params = params

        self.region: Optional[str] = self._get_attr(boto_meta, "region_name")
        self.endpoint_url: Optional[str] = self._get_attr(
            boto_meta, "endpoint_url"
        )
        self.service_id = str(
            self._get_attr(service_model, "service_id", self.service)
        )
        self.span_name = f"{self.service_id}.{self.operation}"

    @staticmethod
    def _get_attr(obj, name: str, default=None):
        try:
            return getattr(obj, name)
        except AttributeError:
            _logger.warning("Could not get attribute '%s'", name)
            return default


class _AwsSdkAttributeExtension:
    """Adds the attributes of the field mappings of the called service.

    Request attributes are added before the span starts, response attributes
    after a successful call. A payload that cannot be parsed raises out of
    the callbacks and drops all attributes of that callback.
    """

    def __init__(
        self, call_context: _AwsSdkCallContext, serializer: Serializer
    ):
        self._call_context = call_context
        self._serializer = serializer

    def extract_attributes(self, attributes: _AttributeMapT):
        extracted = {}
        for mapping in request_mappings(self._call_context.service):
            value = self._call_context.params.get(mapping.field)
            if mapping.payload:
                value = _request_payload(value)
            self._serialize_into(extracted, mapping, value)

        attributes.update(extracted)

    def on_success(self, span: Span, result: _BotoResultT):
        if not span.is_recording():
            return

        attributes = {}
        payloads = {}
        for mapping in response_mappings(self._call_context.service):
            if mapping.payload:
                if mapping.field not in payloads:
                    payloads[mapping.field] = _take_response_payload(
                        result, mapping.field
                    )
                value = payloads[mapping.field]
            else:
                value = result.get(mapping.field)
            self._serialize_into(attributes, mapping, value)

        span.set_attributes(attributes)

    def _serialize_into(
        self, attributes: _AttributeMapT, mapping: _FieldMapping, value: Any
    ):
        serialized = self._serializer.serialize_attribute(
            mapping.attribute, RawValue.of(value)
        )
        if serialized is not None:
            attributes[mapping.attribute] = serialized


def _request_payload(body: Any) -> Optional[bytes]:
    if isinstance(body, str):
        return body.encode("utf-8")
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    if body is not None:
        # a file like body belongs to the caller and is sent as is
        _logger.debug("Skipping request payload of type %s", type(body))
    return None


def _take_response_payload(
    result: _BotoResultT, field: str
) -> Optional[bytes]:
    body = result.get(field)
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    if not isinstance(body, StreamingBody):
        return None

    try:
        content = body.read()
    finally:
        body.close()
    # Replenish stream for downstream application use
    result[field] = StreamingBody(io.BytesIO(content), len(content))
    return content
