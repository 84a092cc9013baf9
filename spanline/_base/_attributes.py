"""
Validation and bounding of span attribute values.

Allowed values are ``str``, ``bool``, ``int`` and ``float``, or homogeneous
sequences of one of those. Anything else is dropped; tracing never raises into
the instrumented application because of a bad attribute.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from typeguard import CollectionCheckStrategy, TypeCheckError, check_type

from spanline.logging import get_logger

logger = get_logger(__name__)

AttributeValue = Union[
    str,
    bool,
    int,
    float,
    Sequence[str],
    Sequence[bool],
    Sequence[int],
    Sequence[float],
]

Attributes = Dict[str, AttributeValue]

_SCALARS = (str, bool, int, float)


def clean_value(value: Any) -> Optional[AttributeValue]:
    """
    Normalize an attribute value.

    Sequences are copied into tuples so later changes to the caller's list cannot
    leak into a span.

    Args:
        value (Any): The candidate value

    Returns:
        Optional[AttributeValue]: The normalized value, or None if it is not allowed
    """
    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, (bytes, bytearray, Mapping)):
        return None
    try:
        check_type(
            value,
            AttributeValue,
            collection_check_strategy=CollectionCheckStrategy.ALL_ITEMS,
        )
    except TypeCheckError:
        return None
    # bool is an int subclass, so the type check alone accepts [1, True]
    if len({type(item) for item in value}) > 1:
        return None
    return tuple(value)


def is_valid_key(key: Any) -> bool:
    return isinstance(key, str) and key != ""


class BoundedAttributes:
    """
    Attribute mapping with a maximum number of keys.

    New keys past the limit are dropped and counted. Overwriting an existing key
    always succeeds, whatever the type of its previous value. Not thread-safe; the
    owning span serializes access.
    """

    def __init__(self, max_attributes: int, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._max = max_attributes
        self._values: Dict[str, AttributeValue] = {}
        self.dropped = 0
        if initial:
            self.update(initial)

    def set(self, key: Any, value: Any) -> bool:
        """
        Set one attribute.

        Args:
            key (Any): Attribute key, must be a non-empty string
            value (Any): Attribute value

        Returns:
            bool: True if the attribute was stored
        """
        if not is_valid_key(key):
            logger.debug("Dropping attribute with invalid key %r", key)
            return False
        cleaned = clean_value(value)
        if cleaned is None:
            logger.debug("Dropping attribute %r: unsupported value %r", key, value)
            return False
        if key not in self._values and len(self._values) >= self._max:
            self.dropped += 1
            return False
        self._values[key] = cleaned
        return True

    def update(self, attributes: Mapping[str, Any]) -> None:
        if not isinstance(attributes, Mapping):
            logger.debug("Ignoring attributes that are not a mapping: %r", attributes)
            return
        for key, value in attributes.items():
            self.set(key, value)

    def snapshot(self) -> Dict[str, AttributeValue]:
        return dict(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __getitem__(self, key: str) -> AttributeValue:
        return self._values[key]


def bounded_copy(
    attributes: Optional[Mapping[str, Any]], max_attributes: int
) -> Tuple[Dict[str, AttributeValue], int]:
    """
    Validate and cap a one-off attribute mapping (event or link attributes).

    Args:
        attributes (Optional[Mapping[str, Any]]): Attributes to copy
        max_attributes (int): Maximum number of keys to keep

    Returns:
        Tuple[Dict[str, AttributeValue], int]: The kept attributes and the number dropped
    """
    if not attributes:
        return {}, 0
    bounded = BoundedAttributes(max_attributes, attributes)
    return bounded.snapshot(), bounded.dropped
