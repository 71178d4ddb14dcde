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

import logging
from os import environ
from typing import Callable, Optional
from urllib.parse import urlparse

from opentelemetry.instrumentation.awssdk.environment_variables import (
    OTEL_INSTRUMENTATION_AWS_SDK_EXPERIMENTAL_SPAN_ATTRIBUTES,
)
from opentelemetry.semconv._incubating.attributes import (
    server_attributes as ServerAttributes,
)
from opentelemetry.util.types import AttributeValue

_logger = logging.getLogger(__name__)


def experimental_span_attributes_enabled() -> bool:
    enabled = environ.get(
        OTEL_INSTRUMENTATION_AWS_SDK_EXPERIMENTAL_SPAN_ATTRIBUTES, "false"
    )
    return enabled.strip().lower() == "true"


def get_server_attributes(
    endpoint_url: Optional[str],
) -> dict[str, AttributeValue]:
    """Returns server.address and server.port of an AWS endpoint URL."""
    if not endpoint_url:
        return {}
    parsed = urlparse(endpoint_url)
    if not parsed.hostname:
        return {}
    return {
        ServerAttributes.SERVER_ADDRESS: parsed.hostname,
        ServerAttributes.SERVER_PORT: parsed.port or 443,
    }


def _safe_invoke(function: Callable, *args):
    function_name = getattr(function, "__name__", "<unknown>")
    try:
        function(*args)
    except Exception as ex:  # pylint:disable=broad-except
        _logger.error(
            "Error when invoking function '%s'", function_name, exc_info=ex
        )
