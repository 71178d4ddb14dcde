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
import json
from unittest import mock

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody
from botocore.stub import Stubber
from moto import mock_aws

from opentelemetry.instrumentation.awssdk.attributes import (
    AWS_BUCKET_NAME,
    AWS_QUEUE_NAME,
    AWS_QUEUE_URL,
    AWS_TABLE_NAME,
    GEN_AI_REQUEST_MAX_TOKENS,
    GEN_AI_REQUEST_MODEL,
    GEN_AI_REQUEST_TEMPERATURE,
    GEN_AI_REQUEST_TOP_P,
    GEN_AI_RESPONSE_FINISH_REASON,
    GEN_AI_USAGE_COMPLETION_TOKENS,
    GEN_AI_USAGE_PROMPT_TOKENS,
)
from opentelemetry.instrumentation.awssdk.marshaller import BotocoreMarshaller
from opentelemetry.semconv._incubating.attributes.cloud_attributes import (
    CLOUD_REGION,
)
from opentelemetry.semconv.trace import SpanAttributes
from opentelemetry.trace import SpanKind
from opentelemetry.trace.status import StatusCode

_REGION = "us-east-1"
_CLAUDE_MODEL = "anthropic.claude-v2"
_CLAUDE_REQUEST = json.dumps(
    {
        "messages": [{"role": "user", "content": "Say this is a test"}],
        "max_tokens": 100,
        "temperature": 0.5,
        "top_p": 0.9,
    }
)
_CLAUDE_RESPONSE = json.dumps(
    {
        "content": [{"type": "text", "text": "This is a test"}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 12, "output_tokens": 7},
    }
).encode("utf-8")


def _streaming_body(content: bytes) -> StreamingBody:
    return StreamingBody(io.BytesIO(content), len(content))


def _invoke_model(session, model_id, request_body, response_body):
    client = session.create_client("bedrock-runtime", region_name=_REGION)
    with Stubber(client) as stubber:
        stubber.add_response(
            "invoke_model",
            {
                "body": _streaming_body(response_body),
                "contentType": "application/json",
            },
        )
        return client.invoke_model(modelId=model_id, body=request_body)


def _dynamodb_table(client, table_name="test-table"):
    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


def _last_span(span_exporter):
    return span_exporter.get_finished_spans()[-1]


@mock_aws
def test_traced_client(span_exporter, instrument, session):
    client = session.create_client("dynamodb", region_name=_REGION)
    client.list_tables()

    (span,) = span_exporter.get_finished_spans()
    assert span.name == "DynamoDB.ListTables"
    assert span.kind == SpanKind.CLIENT
    assert span.attributes[SpanAttributes.RPC_SYSTEM] == "aws-api"
    assert span.attributes[SpanAttributes.RPC_SERVICE] == "DynamoDB"
    assert span.attributes[SpanAttributes.RPC_METHOD] == "ListTables"
    assert span.attributes[CLOUD_REGION] == _REGION
    assert (
        span.attributes["server.address"] == "dynamodb.us-east-1.amazonaws.com"
    )
    assert span.attributes["server.port"] == 443
    assert span.attributes[SpanAttributes.HTTP_STATUS_CODE] == 200
    assert "aws.request_id" in span.attributes


@mock_aws
def test_resource_attributes_disabled_by_default(
    span_exporter, instrument, session
):
    client = session.create_client("dynamodb", region_name=_REGION)
    _dynamodb_table(client)

    span = _last_span(span_exporter)
    assert span.name == "DynamoDB.CreateTable"
    assert AWS_TABLE_NAME not in span.attributes


@mock_aws
def test_dynamodb_table_name(
    span_exporter, instrument, experimental_attributes, session
):
    client = session.create_client("dynamodb", region_name=_REGION)
    _dynamodb_table(client)

    assert _last_span(span_exporter).attributes[AWS_TABLE_NAME] == "test-table"


@mock_aws
def test_dynamodb_batch_table_names(
    span_exporter, instrument, experimental_attributes, session
):
    client = session.create_client("dynamodb", region_name=_REGION)
    _dynamodb_table(client)

    client.batch_get_item(
        RequestItems={"test-table": {"Keys": [{"id": {"S": "1"}}]}}
    )

    span = _last_span(span_exporter)
    assert span.name == "DynamoDB.BatchGetItem"
    assert span.attributes[AWS_TABLE_NAME] == "[test-table]"


@mock_aws
def test_mapped_attributes_are_not_marshalled(
    span_exporter, instrument, experimental_attributes, session
):
    client = session.create_client("dynamodb", region_name=_REGION)

    with mock.patch.object(BotocoreMarshaller, "marshal") as marshal:
        _dynamodb_table(client)

    marshal.assert_not_called()
    assert _last_span(span_exporter).attributes[AWS_TABLE_NAME] == "test-table"


@mock_aws
def test_sqs_queue_attributes(
    span_exporter, instrument, experimental_attributes, session
):
    client = session.create_client("sqs", region_name=_REGION)
    queue_url = client.create_queue(QueueName="test-queue")["QueueUrl"]
    assert _last_span(span_exporter).attributes[AWS_QUEUE_NAME] == "test-queue"

    client.send_message(QueueUrl=queue_url, MessageBody="content")

    span = _last_span(span_exporter)
    assert span.attributes[AWS_QUEUE_URL] == queue_url
    assert AWS_QUEUE_NAME not in span.attributes


@mock_aws
def test_s3_bucket_name(
    span_exporter, instrument, experimental_attributes, session
):
    client = session.create_client("s3", region_name=_REGION)
    client.create_bucket(Bucket="test-bucket")

    span = _last_span(span_exporter)
    assert span.name == "S3.CreateBucket"
    assert span.attributes[AWS_BUCKET_NAME] == "test-bucket"


def test_invoke_model_gen_ai_attributes(
    span_exporter, instrument, experimental_attributes, session
):
    response = _invoke_model(
        session, _CLAUDE_MODEL, _CLAUDE_REQUEST, _CLAUDE_RESPONSE
    )

    (span,) = span_exporter.get_finished_spans()
    assert span.name == "Bedrock Runtime.InvokeModel"
    assert span.attributes[GEN_AI_REQUEST_MODEL] == _CLAUDE_MODEL
    assert span.attributes[GEN_AI_REQUEST_MAX_TOKENS] == "100"
    assert span.attributes[GEN_AI_REQUEST_TEMPERATURE] == "0.5"
    assert span.attributes[GEN_AI_REQUEST_TOP_P] == "0.9"
    assert span.attributes[GEN_AI_RESPONSE_FINISH_REASON] == "end_turn"
    assert span.attributes[GEN_AI_USAGE_PROMPT_TOKENS] == "12"
    assert span.attributes[GEN_AI_USAGE_COMPLETION_TOKENS] == "7"

    # the body stays readable for the application
    assert response["body"].read() == _CLAUDE_RESPONSE


def test_invoke_model_titan(
    span_exporter, instrument, experimental_attributes, session
):
    request_body = json.dumps(
        {
            "inputText": "Say this is a test",
            "textGenerationConfig": {
                "maxTokenCount": 10,
                "temperature": 0.8,
                "topP": 1,
            },
        }
    ).encode("utf-8")
    response_body = json.dumps(
        {
            "inputTextTokenCount": 5,
            "results": [
                {
                    "tokenCount": 9,
                    "outputText": "This is a test",
                    "completionReason": "FINISH",
                }
            ],
        }
    ).encode("utf-8")

    _invoke_model(
        session, "amazon.titan-text-lite-v1", request_body, response_body
    )

    (span,) = span_exporter.get_finished_spans()
    assert span.attributes[GEN_AI_REQUEST_MAX_TOKENS] == "10"
    assert span.attributes[GEN_AI_REQUEST_TEMPERATURE] == "0.8"
    assert span.attributes[GEN_AI_REQUEST_TOP_P] == "1.0"
    assert span.attributes[GEN_AI_RESPONSE_FINISH_REASON] == "FINISH"
    assert span.attributes[GEN_AI_USAGE_PROMPT_TOKENS] == "5"
    assert span.attributes[GEN_AI_USAGE_COMPLETION_TOKENS] == "9"


def test_invoke_model_malformed_response_does_not_fail_call(
    span_exporter, instrument, experimental_attributes, session
):
    with mock.patch(
        "opentelemetry.instrumentation.awssdk.utils._logger"
    ) as logger:
        response = _invoke_model(
            session, _CLAUDE_MODEL, _CLAUDE_REQUEST, b"not json"
        )

    assert response["body"].read() == b"not json"
    logger.error.assert_called_once()

    (span,) = span_exporter.get_finished_spans()
    assert span.attributes[GEN_AI_REQUEST_MODEL] == _CLAUDE_MODEL
    assert GEN_AI_RESPONSE_FINISH_REASON not in span.attributes
    assert GEN_AI_USAGE_PROMPT_TOKENS not in span.attributes


def test_invoke_model_malformed_request_drops_request_attributes(
    span_exporter, instrument, experimental_attributes, session
):
    response = _invoke_model(
        session, _CLAUDE_MODEL, "not json", _CLAUDE_RESPONSE
    )

    assert response["body"].read() == _CLAUDE_RESPONSE

    (span,) = span_exporter.get_finished_spans()
    assert GEN_AI_REQUEST_MODEL not in span.attributes
    assert GEN_AI_REQUEST_MAX_TOKENS not in span.attributes
    assert span.attributes[GEN_AI_RESPONSE_FINISH_REASON] == "end_turn"
    assert span.attributes[GEN_AI_USAGE_PROMPT_TOKENS] == "12"


def test_invoke_model_without_experimental_attributes(
    span_exporter, instrument, session
):
    response = _invoke_model(
        session, _CLAUDE_MODEL, _CLAUDE_REQUEST, _CLAUDE_RESPONSE
    )

    (span,) = span_exporter.get_finished_spans()
    assert GEN_AI_REQUEST_MODEL not in span.attributes
    assert GEN_AI_USAGE_PROMPT_TOKENS not in span.attributes
    assert response["body"].read() == _CLAUDE_RESPONSE


def test_client_error(
    span_exporter, instrument, experimental_attributes, session
):
    client = session.create_client("bedrock-runtime", region_name=_REGION)
    with Stubber(client) as stubber:
        stubber.add_client_error(
            "invoke_model",
            service_error_code="ValidationException",
            http_status_code=400,
        )
        with pytest.raises(ClientError):
            client.invoke_model(modelId=_CLAUDE_MODEL, body=_CLAUDE_REQUEST)

    (span,) = span_exporter.get_finished_spans()
    assert span.status.status_code == StatusCode.ERROR
    assert span.attributes[SpanAttributes.HTTP_STATUS_CODE] == 400
    assert span.attributes[GEN_AI_REQUEST_MODEL] == _CLAUDE_MODEL
    assert GEN_AI_RESPONSE_FINISH_REASON not in span.attributes


def test_request_and_response_hooks(span_exporter, tracer_provider, session):
    # pylint: disable=import-outside-toplevel
    from opentelemetry.instrumentation.awssdk import AwsSdkInstrumentor

    calls = []

    def request_hook(span, service_name, operation_name, api_params):
        calls.append(("request", service_name, operation_name))
        span.set_attribute("hook.model", api_params["modelId"])

    def response_hook(span, service_name, operation_name, result):
        calls.append(("response", service_name, operation_name))
        span.set_attribute("hook.content_type", result["contentType"])

    instrumentor = AwsSdkInstrumentor()
    instrumentor.instrument(
        tracer_provider=tracer_provider,
        request_hook=request_hook,
        response_hook=response_hook,
    )
    try:
        _invoke_model(
            session, _CLAUDE_MODEL, _CLAUDE_REQUEST, _CLAUDE_RESPONSE
        )
    finally:
        instrumentor.uninstrument()

    assert calls == [
        ("request", "bedrock-runtime", "InvokeModel"),
        ("response", "bedrock-runtime", "InvokeModel"),
    ]
    (span,) = span_exporter.get_finished_spans()
    assert span.attributes["hook.model"] == _CLAUDE_MODEL
    assert span.attributes["hook.content_type"] == "application/json"


@mock_aws
def test_uninstrument(span_exporter, instrument, session):
    instrument.uninstrument()

    client = session.create_client("dynamodb", region_name=_REGION)
    client.list_tables()

    assert not span_exporter.get_finished_spans()
