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

from enum import Enum
from typing import Any, Collection, Dict, Mapping, NamedTuple, Tuple

_OperationModelT = "botocore.model.OperationModel"


class RawValueKind(Enum):
    ABSENT = "absent"
    RECORD = "record"
    COLLECTION = "collection"
    MAP = "map"
    BYTES = "bytes"
    PRIMITIVE = "primitive"


class StructuredRecord(NamedTuple):
    """Botocore request parameters together with the operation model that
    describes their shape, so they can be marshalled to the wire format."""

    params: Dict[str, Any]
    operation_model: _OperationModelT


class RawValue:
    """A value taken from an AWS SDK request or response, classified once.

    ``value`` depends on ``kind``:

    * ``ABSENT``: ``None``
    * ``RECORD``: a :class:`StructuredRecord`
    * ``COLLECTION``: a tuple of :class:`RawValue` elements
    * ``MAP``: a tuple of :class:`RawValue` keys, values are dropped
    * ``BYTES``: ``bytes``
    * ``PRIMITIVE``: the original object
    """

    __slots__ = ("kind", "value")

    def __init__(self, kind: RawValueKind, value: Any = None):
        self.kind = kind
        self.value = value

    def __repr__(self):
        return f"RawValue({self.kind.name}, {self.value!r})"

    @classmethod
    def absent(cls) -> RawValue:
        return cls(RawValueKind.ABSENT)

    @classmethod
    def of(cls, target: Any) -> RawValue:
        """Classifies an arbitrary SDK object into a RawValue."""
        if target is None:
            return cls.absent()
        if isinstance(target, RawValue):
            return target
        # checked before Collection, a NamedTuple is a tuple
        if isinstance(target, StructuredRecord):
            return cls(RawValueKind.RECORD, target)
        if isinstance(target, (bytes, bytearray, memoryview)):
            return cls(RawValueKind.BYTES, bytes(target))
        if isinstance(target, Mapping):
            return cls(RawValueKind.MAP, _classify_all(target.keys()))
        if isinstance(target, str):
            return cls(RawValueKind.PRIMITIVE, target)
        if isinstance(target, Collection):
            return cls(RawValueKind.COLLECTION, _classify_all(target))
        return cls(RawValueKind.PRIMITIVE, target)


def _classify_all(items: Collection[Any]) -> Tuple[RawValue, ...]:
    return tuple(RawValue.of(item) for item in items)
