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

from typing import Dict, NamedTuple, Tuple

from opentelemetry.instrumentation.awssdk.attributes import (
    AWS_BEDROCK_AGENT_ID,
    AWS_BEDROCK_DATA_SOURCE_ID,
    AWS_BEDROCK_GUARDRAIL_ID,
    AWS_BEDROCK_KNOWLEDGE_BASE_ID,
    AWS_BUCKET_NAME,
    AWS_QUEUE_NAME,
    AWS_QUEUE_URL,
    AWS_STREAM_NAME,
    AWS_TABLE_NAME,
    GEN_AI_REQUEST_MAX_TOKENS,
    GEN_AI_REQUEST_MODEL,
    GEN_AI_REQUEST_TEMPERATURE,
    GEN_AI_REQUEST_TOP_P,
    GEN_AI_RESPONSE_FINISH_REASON,
    GEN_AI_USAGE_COMPLETION_TOKENS,
    GEN_AI_USAGE_PROMPT_TOKENS,
)


class _FieldMapping(NamedTuple):
    """Maps a top level field of a botocore request or response to a span
    attribute. ``payload`` fields hold a JSON document (``body`` of Bedrock
    InvokeModel) the attribute value is extracted from."""

    attribute: str
    field: str
    payload: bool = False


_MappingsT = Tuple[_FieldMapping, ...]

################################################################################
# common fields
################################################################################

_GUARDRAIL_ID = _FieldMapping(AWS_BEDROCK_GUARDRAIL_ID, "guardrailId")
_AGENT_ID = _FieldMapping(AWS_BEDROCK_AGENT_ID, "agentId")
_KNOWLEDGE_BASE_ID = _FieldMapping(
    AWS_BEDROCK_KNOWLEDGE_BASE_ID, "knowledgeBaseId"
)
_DATA_SOURCE_ID = _FieldMapping(AWS_BEDROCK_DATA_SOURCE_ID, "dataSourceId")

_BEDROCK_AGENT_RUNTIME_FIELDS = (_AGENT_ID, _KNOWLEDGE_BASE_ID)
_BEDROCK_AGENT_FIELDS = _BEDROCK_AGENT_RUNTIME_FIELDS + (_DATA_SOURCE_ID,)

################################################################################
# per service mappings, keyed by the lower case botocore service name
################################################################################

_REQUEST_MAPPINGS: Dict[str, _MappingsT] = {
    "s3": (_FieldMapping(AWS_BUCKET_NAME, "Bucket"),),
    "sqs": (
        _FieldMapping(AWS_QUEUE_URL, "QueueUrl"),
        _FieldMapping(AWS_QUEUE_NAME, "QueueName"),
    ),
    "kinesis": (_FieldMapping(AWS_STREAM_NAME, "StreamName"),),
    "dynamodb": (
        _FieldMapping(AWS_TABLE_NAME, "TableName"),
        _FieldMapping(AWS_TABLE_NAME, "RequestItems"),
    ),
    "bedrock": (_GUARDRAIL_ID,),
    "bedrock-agent": _BEDROCK_AGENT_FIELDS,
    "bedrock-agent-runtime": _BEDROCK_AGENT_RUNTIME_FIELDS,
    "bedrock-runtime": (
        _FieldMapping(GEN_AI_REQUEST_MODEL, "modelId"),
        _FieldMapping(GEN_AI_REQUEST_TEMPERATURE, "body", payload=True),
        _FieldMapping(GEN_AI_REQUEST_TOP_P, "body", payload=True),
        _FieldMapping(GEN_AI_REQUEST_MAX_TOKENS, "body", payload=True),
    ),
}

_RESPONSE_MAPPINGS: Dict[str, _MappingsT] = {
    "bedrock": (_GUARDRAIL_ID,),
    "bedrock-agent": _BEDROCK_AGENT_FIELDS,
    "bedrock-agent-runtime": _BEDROCK_AGENT_RUNTIME_FIELDS,
    "bedrock-runtime": (
        _FieldMapping(GEN_AI_RESPONSE_FINISH_REASON, "body", payload=True),
        _FieldMapping(GEN_AI_USAGE_PROMPT_TOKENS, "body", payload=True),
        _FieldMapping(GEN_AI_USAGE_COMPLETION_TOKENS, "body", payload=True),
    ),
}


def request_mappings(service: str) -> _MappingsT:
    return _REQUEST_MAPPINGS.get(service, ())


def response_mappings(service: str) -> _MappingsT:
    return _RESPONSE_MAPPINGS.get(service, ())
