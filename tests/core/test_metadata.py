# tests/core/test_metadata.py
"""Tests for metadata comparison and snapshotting."""

import threading
from typing import Any

import numpy as np
import pytest
from structlog.testing import capture_logs

from eventgear.core.metadata import canonical_json, metadata_equal, snapshot_metadata


class TestCanonicalJson:
    """Canonical JSON text of metadata values."""

    def test_keys_sorted_without_whitespace(self) -> None:
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_numpy_values_normalized(self) -> None:
        assert canonical_json({"n": np.int64(3), "a": np.array([1, 2])}) == '{"a":[1,2],"n":3}'

    def test_sets_are_ordered(self) -> None:
        assert canonical_json({3, 1, 2}) == "[1,2,3]"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), -float("inf")])
    def test_non_finite_rejected(self, value: float) -> None:
        with pytest.raises(ValueError, match="non-finite"):
            canonical_json({"x": value})


class TestMetadataEqual:
    """Deep structural equality."""

    def test_key_order_ignored(self) -> None:
        assert metadata_equal({"a": 1, "b": {"c": [1, 2]}}, {"b": {"c": [1, 2]}, "a": 1})

    def test_int_and_float_spelling_equal(self) -> None:
        assert metadata_equal({"v": 1}, {"v": 1.0})

    def test_nested_difference_detected(self) -> None:
        assert not metadata_equal({"a": {"b": [1, 2]}}, {"a": {"b": [2, 1]}})

    def test_none_handling(self) -> None:
        assert metadata_equal(None, None)
        assert not metadata_equal(None, {})

    def test_nan_falls_back_to_python_equality(self) -> None:
        nan = float("nan")
        value = [nan]
        # Same list object is identical; a different list with NaN is not equal
        assert metadata_equal(value, value)
        assert not metadata_equal([nan], [1.0])

    def test_unserializable_values_compared_structurally(self) -> None:
        marker = object()
        assert metadata_equal({"m": marker}, {"m": marker})
        assert not metadata_equal({"m": marker}, {"m": object()})

    def test_ambiguous_comparison_is_not_equal(self) -> None:
        class Ambiguous:
            def __eq__(self, other: Any) -> bool:
                raise ValueError("ambiguous")

            __hash__ = object.__hash__

        assert not metadata_equal(Ambiguous(), Ambiguous())


class TestSnapshotMetadata:
    """Deep copies protect stored metadata from caller mutation."""

    def test_deep_copy(self) -> None:
        original = {"items": [1, 2]}
        snapshot = snapshot_metadata(original)

        original["items"].append(3)

        assert snapshot == {"items": [1, 2]}
        assert snapshot is not original

    def test_scalars_returned_as_is(self) -> None:
        assert snapshot_metadata(None) is None
        assert snapshot_metadata("text") == "text"

    def test_uncopyable_kept_by_reference(self) -> None:
        lock = threading.Lock()
        value = {"lock": lock}

        with capture_logs() as cap_logs:
            snapshot = snapshot_metadata(value)

        assert snapshot is value
        assert cap_logs[0]["event"] == "Metadata kept by reference"
