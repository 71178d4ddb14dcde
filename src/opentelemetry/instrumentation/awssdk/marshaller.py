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
from typing import IO, Any, Mapping, Optional, Union
from urllib.parse import urlencode

from botocore.serialize import SERIALIZERS, create_serializer

from opentelemetry.instrumentation.awssdk.raw_value import StructuredRecord

_logger = logging.getLogger(__name__)

_BodyT = Union[bytes, str, IO[bytes]]


class BotocoreMarshaller:
    """Encodes a :class:`StructuredRecord` with the botocore serializer of
    the operation's protocol, i.e. the same bytes botocore sends on the wire.
    """

    def marshal(self, record: StructuredRecord) -> Optional[_BodyT]:
        operation_model = record.operation_model
        protocol = operation_model.metadata.get("protocol")
        if protocol not in SERIALIZERS:
            _logger.debug(
                "No marshaller for protocol '%s' of %s",
                protocol,
                operation_model.name,
            )
            return None

        serializer = create_serializer(protocol, include_validation=False)
        try:
            request = serializer.serialize_to_request(
                record.params, operation_model
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            # without validation botocore fails on unknown members and
            # missing URI parameters
            _logger.debug(
                "Unable to marshal %s request: %r",
                operation_model.name,
                exc,
            )
            return None
        return _as_body(request.get("body"))


def _as_body(body: Any) -> Optional[_BodyT]:
    # query and ec2 serializers leave the body as a dict of form parameters
    if isinstance(body, Mapping):
        return urlencode(body, doseq=True)
    return body
