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

"""Attribute keys set by the AWS SDK instrumentation.

The AWS resource keys are experimental and not part of the semantic
conventions package yet. The gen_ai keys follow
https://github.com/open-telemetry/semantic-conventions/blob/main/docs/gen-ai/gen-ai-spans.md
using the names the AWS SDK instrumentations have historically emitted.
"""

AWS_BUCKET_NAME = "aws.bucket.name"
AWS_QUEUE_URL = "aws.queue.url"
AWS_QUEUE_NAME = "aws.queue.name"
AWS_STREAM_NAME = "aws.stream.name"
AWS_TABLE_NAME = "aws.table.name"
AWS_BEDROCK_GUARDRAIL_ID = "aws.bedrock.guardrail_id"
AWS_BEDROCK_AGENT_ID = "aws.bedrock.agent_id"
AWS_BEDROCK_DATA_SOURCE_ID = "aws.bedrock.data_source_id"
AWS_BEDROCK_KNOWLEDGE_BASE_ID = "aws.bedrock.knowledge_base_id"

GEN_AI_REQUEST_MODEL = "gen_ai.request.model"
GEN_AI_RESPONSE_FINISH_REASON = "gen_ai.response.finish_reason"
GEN_AI_USAGE_PROMPT_TOKENS = "gen_ai.usage.prompt_tokens"
GEN_AI_USAGE_COMPLETION_TOKENS = "gen_ai.usage.completion_tokens"
GEN_AI_REQUEST_TEMPERATURE = "gen_ai.request.temperature"
GEN_AI_REQUEST_TOP_P = "gen_ai.request.top_p"
GEN_AI_REQUEST_MAX_TOKENS = "gen_ai.request.max_tokens"

_GEN_AI_ATTRIBUTES = frozenset(
    (
        GEN_AI_REQUEST_MODEL,
        GEN_AI_RESPONSE_FINISH_REASON,
        GEN_AI_USAGE_PROMPT_TOKENS,
        GEN_AI_USAGE_COMPLETION_TOKENS,
        GEN_AI_REQUEST_TEMPERATURE,
        GEN_AI_REQUEST_TOP_P,
        GEN_AI_REQUEST_MAX_TOKENS,
    )
)


def is_gen_ai_attribute(attribute_name: str) -> bool:
    """Returns True if the attribute value has to be extracted from a
    generative-AI request or response payload."""
    return attribute_name in _GEN_AI_ATTRIBUTES
