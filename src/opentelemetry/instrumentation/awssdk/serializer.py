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
from contextlib import closing
from typing import Any, NamedTuple, Optional, Tuple

from opentelemetry.instrumentation.awssdk.attributes import (
    is_gen_ai_attribute,
)
from opentelemetry.instrumentation.awssdk.extractor import extract
from opentelemetry.instrumentation.awssdk.marshaller import BotocoreMarshaller
from opentelemetry.instrumentation.awssdk.raw_value import (
    RawValue,
    RawValueKind,
    StructuredRecord,
)

_logger = logging.getLogger(__name__)


class Decoded(NamedTuple):
    """Result of turning a marshalled body into text.

    ``text`` is None if there was nothing to decode or decoding failed, in
    which case ``error`` holds the failure.
    """

    text: Optional[str]
    error: Optional[Exception] = None


class Serializer:
    """Turns AWS SDK values into span attribute strings.

    Args:
        marshaller: encodes structured records to their wire format. Without
            a marshaller structured records serialize to None.
    """

    def __init__(self, marshaller: Optional[BotocoreMarshaller] = None):
        self._marshaller = marshaller

    def serialize_attribute(
        self, attribute_name: str, value: RawValue
    ) -> Optional[str]:
        """Serializes ``value`` for the attribute ``attribute_name``.

        gen_ai attributes are extracted from the JSON payload in ``value``
        and may raise ``AttributeExtractionError``, everything else goes
        through :meth:`serialize` which never raises.
        """
        if is_gen_ai_attribute(attribute_name):
            return extract(attribute_name, value)
        return self.serialize(value)

    def serialize(self, value: RawValue) -> Optional[str]:
        kind = value.kind
        if kind is RawValueKind.ABSENT:
            return None
        if kind is RawValueKind.RECORD:
            return self._serialize_record(value.value)
        if kind in (RawValueKind.COLLECTION, RawValueKind.MAP):
            return self._serialize_collection(value.value)
        if kind is RawValueKind.BYTES:
            return value.value.decode("utf-8", errors="replace")
        return str(value.value)

    def _serialize_record(self, record: StructuredRecord) -> Optional[str]:
        if self._marshaller is None:
            return None
        decoded = decode_body(self._marshaller.marshal(record))
        if decoded.error is not None:
            _logger.debug(
                "Unable to decode %s request: %s",
                record.operation_model.name,
                decoded.error,
            )
        return decoded.text

    def _serialize_collection(
        self, elements: Tuple[RawValue, ...]
    ) -> Optional[str]:
        serialized = [
            text
            for text in (self.serialize(element) for element in elements)
            if text is not None
        ]
        if not any(serialized):
            return None
        return "[" + ",".join(serialized) + "]"


def decode_body(body: Any) -> Decoded:
    """Reads a marshalled body as UTF-8 text. Streams are drained and
    closed."""
    if body is None:
        return Decoded(None)
    if isinstance(body, str):
        return Decoded(body)
    if isinstance(body, (bytes, bytearray)):
        try:
            return Decoded(bytes(body).decode("utf-8"))
        except UnicodeDecodeError as exc:
            return Decoded(None, exc)
    if not hasattr(body, "read"):
        return Decoded(None)

    with closing(body) as stream:
        try:
            content = stream.read()
        except OSError as exc:
            return Decoded(None, exc)
    return decode_body(content)
