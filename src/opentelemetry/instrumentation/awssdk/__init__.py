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

"""
Instrument `Botocore`_ to trace AWS service requests and to record AWS
resource names and generative-AI attributes of the calls.

.. _Botocore: https://pypi.org/project/botocore/

Usage
-----

.. code:: python

    from opentelemetry.instrumentation.awssdk import AwsSdkInstrumentor
    import botocore.session


    AwsSdkInstrumentor().instrument()

    session = botocore.session.get_session()
    client = session.create_client("bedrock-runtime", region_name="us-east-1")
    client.invoke_model(
        modelId="anthropic.claude-v2",
        body='{"prompt": "Say this is a test", "max_tokens": 10}',
    )

Attributes such as ``aws.table.name`` or ``gen_ai.usage.prompt_tokens`` are
experimental and only recorded when the environment variable
``OTEL_INSTRUMENTATION_AWS_SDK_EXPERIMENTAL_SPAN_ATTRIBUTES`` is set to
``true``.

API
---

The `instrument` method accepts the following keyword args:

* tracer_provider (TracerProvider) - an optional tracer provider
* request_hook (Callable) - a function with extra user-defined logic to be performed before performing the request
this function signature is:  ``def request_hook(span: Span, service_name: str, operation_name: str, api_params: dict) -> None``
* response_hook (Callable) - a function with extra user-defined logic to be performed after performing the request
this function signature is:  ``def response_hook(span: Span, service_name: str, operation_name: str, result: dict) -> None``

The attribute normalization can also be used on its own:

.. code:: python

    from opentelemetry.instrumentation.awssdk import RawValue, Serializer

    serializer = Serializer()
    serializer.serialize_attribute(
        "gen_ai.usage.prompt_tokens",
        RawValue.of(b'{"usage": {"input_tokens": 12}}'),
    )  # "12"

Structured request parameters are only serialized when a marshaller is given,
e.g. ``Serializer(BotocoreMarshaller())`` encodes a ``StructuredRecord`` with
the botocore serializer of its protocol.
"""

import logging
from typing import Any, Collection, Dict, Optional, Tuple

from botocore.client import BaseClient
from botocore.exceptions import ClientError
from wrapt import wrap_function_wrapper

from opentelemetry.instrumentation.awssdk.attributes import (
    is_gen_ai_attribute,
)
from opentelemetry.instrumentation.awssdk.extension import (
    _AwsSdkAttributeExtension,
    _AwsSdkCallContext,
)
from opentelemetry.instrumentation.awssdk.extractor import (
    AttributeExtractionError,
)
from opentelemetry.instrumentation.awssdk.marshaller import BotocoreMarshaller
from opentelemetry.instrumentation.awssdk.package import _instruments
from opentelemetry.instrumentation.awssdk.raw_value import (
    RawValue,
    RawValueKind,
    StructuredRecord,
)
from opentelemetry.instrumentation.awssdk.serializer import Serializer
from opentelemetry.instrumentation.awssdk.utils import (
    _safe_invoke,
    experimental_span_attributes_enabled,
    get_server_attributes,
)
from opentelemetry.instrumentation.awssdk.version import __version__
from opentelemetry.instrumentation.instrumentor import BaseInstrumentor
from opentelemetry.instrumentation.utils import (
    is_instrumentation_enabled,
    suppress_http_instrumentation,
    unwrap,
)
from opentelemetry.semconv._incubating.attributes.cloud_attributes import (
    CLOUD_REGION,
)
from opentelemetry.semconv.trace import SpanAttributes
from opentelemetry.trace import SpanKind, get_tracer
from opentelemetry.trace.span import Span

__all__ = [
    "AttributeExtractionError",
    "AwsSdkInstrumentor",
    "BotocoreMarshaller",
    "RawValue",
    "RawValueKind",
    "Serializer",
    "StructuredRecord",
    "is_gen_ai_attribute",
]

logger = logging.getLogger(__name__)


class AwsSdkInstrumentor(BaseInstrumentor):
    """An instrumentor for the AWS SDK (botocore).

    See `BaseInstrumentor`
    """

    def __init__(self):
        super().__init__()
        self.request_hook = None
        self.response_hook = None
        # mapped fields are scalars, payloads and collections, never records
        self._serializer = Serializer()

    def instrumentation_dependencies(self) -> Collection[str]:
        return _instruments

    def _instrument(self, **kwargs):
        # pylint: disable=attribute-defined-outside-init
        self.request_hook = kwargs.get("request_hook")
        self.response_hook = kwargs.get("response_hook")
        self._tracer = get_tracer(
            __name__,
            __version__,
            kwargs.get("tracer_provider"),
            schema_url="https://opentelemetry.io/schemas/1.11.0",
        )

        wrap_function_wrapper(
            "botocore.client",
            "BaseClient._make_api_call",
            self._patched_api_call,
        )

    def _uninstrument(self, **kwargs):
        unwrap(BaseClient, "_make_api_call")

    def _patched_api_call(self, original_func, instance, args, kwargs):
        if not is_instrumentation_enabled():
            return original_func(*args, **kwargs)

        call_context = _determine_call_context(instance, args)
        if call_context is None:
            return original_func(*args, **kwargs)

        attributes = {
            SpanAttributes.RPC_SYSTEM: "aws-api",
            SpanAttributes.RPC_SERVICE: call_context.service_id,
            SpanAttributes.RPC_METHOD: call_context.operation,
            CLOUD_REGION: call_context.region,
            **get_server_attributes(call_context.endpoint_url),
        }

        extension = None
        if experimental_span_attributes_enabled():
            extension = _AwsSdkAttributeExtension(
                call_context, self._serializer
            )
            _safe_invoke(extension.extract_attributes, attributes)

        with self._tracer.start_as_current_span(
            call_context.span_name,
            kind=SpanKind.CLIENT,
            attributes=attributes,
        ) as span:
            self._call_request_hook(span, call_context)

            result = None
            try:
                with suppress_http_instrumentation():
                    try:
                        result = original_func(*args, **kwargs)
                    except ClientError as error:
                        result = getattr(error, "response", None)
                        _apply_response_attributes(span, result)
                        raise
                    _apply_response_attributes(span, result)
                    if extension is not None:
                        _safe_invoke(extension.on_success, span, result)
            finally:
                self._call_response_hook(span, call_context, result)

            return result

    def _call_request_hook(self, span: Span, call_context: _AwsSdkCallContext):
        if not callable(self.request_hook):
            return
        self.request_hook(
            span,
            call_context.service,
            call_context.operation,
            call_context.params,
        )

    def _call_response_hook(
        self, span: Span, call_context: _AwsSdkCallContext, result
    ):
        if not callable(self.response_hook):
            return
        self.response_hook(
            span, call_context.service, call_context.operation, result
        )


def _apply_response_attributes(span: Span, result: Optional[Dict[str, Any]]):
    if result is None or not span.is_recording():
        return

    metadata = result.get("ResponseMetadata")
    if metadata is None:
        return

    request_id = metadata.get("RequestId")
    if request_id is None:
        headers = metadata.get("HTTPHeaders") or {}
        request_id = (
            headers.get("x-amzn-RequestId")
            or headers.get("x-amz-request-id")
            or headers.get("x-amz-id-2")
        )
    if request_id:
        span.set_attribute("aws.request_id", request_id)

    retry_attempts = metadata.get("RetryAttempts")
    if retry_attempts is not None:
        span.set_attribute("retry_attempts", retry_attempts)

    status_code = metadata.get("HTTPStatusCode")
    if status_code is not None:
        span.set_attribute(SpanAttributes.HTTP_STATUS_CODE, status_code)


def _determine_call_context(
    client: BaseClient, args: Tuple[str, Dict[str, Any]]
) -> Optional[_AwsSdkCallContext]:
    try:
        call_context = _AwsSdkCallContext(client, args)

        logger.debug(
            "AWS SDK invocation: %s %s",
            call_context.service,
            call_context.operation,
        )

        return call_context
    except Exception as ex:  # pylint:disable=broad-except
        # only happens if botocore internals changed and 'service' or
        # 'operation' could not be determined
        logger.error("Error when initializing call context", exc_info=ex)
        return None
