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
Extraction of gen_ai attributes from Bedrock InvokeModel payloads.

Every model family puts the same information at a different place of its
JSON request or response body, e.g. the number of prompt tokens is
``prompt_token_count`` for Meta Llama, ``inputTextTokenCount`` for Amazon
Titan and ``usage.input_tokens`` for Anthropic Claude. ``_FIELD_PATHS`` lists
for every attribute the candidate paths in priority order; the first path
present in the document wins.

A path holding JSON ``null``, or a value that cannot be coerced to the
attribute's number type, counts as not present and the next path is tried.
The walk does not stop there with ``"null"`` or ``"0"``. Every path is tried
on its own, not only when the container of an earlier path is missing.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Tuple, Union

from opentelemetry.instrumentation.awssdk.attributes import (
    GEN_AI_REQUEST_MAX_TOKENS,
    GEN_AI_REQUEST_TEMPERATURE,
    GEN_AI_REQUEST_TOP_P,
    GEN_AI_RESPONSE_FINISH_REASON,
    GEN_AI_USAGE_COMPLETION_TOKENS,
    GEN_AI_USAGE_PROMPT_TOKENS,
)
from opentelemetry.instrumentation.awssdk.raw_value import (
    RawValue,
    RawValueKind,
)

_logger = logging.getLogger(__name__)

_PATH_STEP = re.compile(r"([^.\[\]]+)|\[(\d+)\]")


class AttributeExtractionError(ValueError):
    """Raised when a payload expected to hold JSON cannot be parsed."""


class _Rendering(Enum):
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"


class _PathProbe(NamedTuple):
    path: Tuple[Union[str, int], ...]
    rendering: _Rendering

    def lookup(self, document: Any) -> Any:
        node = document
        for step in self.path:
            if isinstance(step, int):
                if not isinstance(node, list) or step >= len(node):
                    return None
            elif not isinstance(node, dict) or step not in node:
                return None
            node = node[step]
        return node

    def render(self, node: Any) -> Optional[str]:
        if self.rendering is _Rendering.TEXT:
            if isinstance(node, str):
                return node
            return json.dumps(node, separators=(",", ":"))
        try:
            if self.rendering is _Rendering.INTEGER:
                return str(int(node))
            return str(float(node))
        except (TypeError, ValueError, OverflowError):
            _logger.debug(
                "Ignoring non numeric value at %s: %r", self.path, node
            )
            return None


def _probe(path: str, rendering: _Rendering) -> _PathProbe:
    steps = tuple(
        int(index) if index else key
        for key, index in _PATH_STEP.findall(path)
    )
    return _PathProbe(steps, rendering)


def _text(path: str) -> _PathProbe:
    return _probe(path, _Rendering.TEXT)


def _integer(path: str) -> _PathProbe:
    return _probe(path, _Rendering.INTEGER)


def _float(path: str) -> _PathProbe:
    return _probe(path, _Rendering.FLOAT)


_FIELD_PATHS: Dict[str, Tuple[_PathProbe, ...]] = {
    GEN_AI_RESPONSE_FINISH_REASON: (
        _text("stop_reason"),
        _text("results[0].completionReason"),
    ),
    GEN_AI_USAGE_PROMPT_TOKENS: (
        _integer("prompt_token_count"),
        _integer("inputTextTokenCount"),
        _integer("usage.input_tokens"),
    ),
    # TODO: confirm with the Titan response format whether
    # inputTextTokenCount really is meant as a completion token fallback
    GEN_AI_USAGE_COMPLETION_TOKENS: (
        _integer("generation_token_count"),
        _integer("results[0].tokenCount"),
        _integer("inputTextTokenCount"),
        _integer("usage.output_tokens"),
    ),
    GEN_AI_REQUEST_TOP_P: (
        _float("top_p"),
        _float("textGenerationConfig.topP"),
    ),
    GEN_AI_REQUEST_TEMPERATURE: (
        _float("temperature"),
        _float("textGenerationConfig.temperature"),
    ),
    GEN_AI_REQUEST_MAX_TOKENS: (
        _integer("max_tokens"),
        _integer("max_gen_len"),
        _integer("textGenerationConfig.maxTokenCount"),
    ),
}


def extract(attribute_name: str, value: RawValue) -> Optional[str]:
    """Returns the value of a gen_ai attribute found in a JSON payload.

    Only byte payloads are parsed; a primitive value is returned as text as
    is. Returns None if none of the known paths for the attribute is present.

    Raises:
        AttributeExtractionError: if the payload is not valid UTF-8 JSON.
    """
    if value.kind is RawValueKind.PRIMITIVE:
        return str(value.value)
    if value.kind is not RawValueKind.BYTES:
        return None

    document = _parse(attribute_name, value.value)

    probes = _FIELD_PATHS.get(attribute_name)
    if probes is None:
        return None

    for probe in probes:
        node = probe.lookup(document)
        if node is None:
            continue
        rendered = probe.render(node)
        if rendered is not None:
            return rendered
    return None


def _parse(attribute_name: str, payload: bytes) -> Any:
    try:
        return json.loads(payload.decode("utf-8"))
    except (ValueError, RecursionError) as exc:
        # UnicodeDecodeError and JSONDecodeError are ValueErrors, nesting
        # deeper than the interpreter stack raises RecursionError
        raise AttributeExtractionError(
            f"Unable to parse payload for '{attribute_name}' as JSON"
        ) from exc
