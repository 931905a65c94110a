"""Tests for the Sequence entity."""

import pytest

from relstore.domain.entities.sequence import Sequence


class TestSequence:
    """Verify sequence counting."""

    def test_first_value_is_start(self):
        seq = Sequence("person_id_seq", "person", "id")
        assert seq.last_value is None
        assert seq.next_value() == 1
        assert seq.last_value == 1

    def test_strictly_increasing(self):
        seq = Sequence("s", "t", "c")
        values = [seq.next_value() for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_custom_start_and_increment(self):
        seq = Sequence("s", "t", "c", start=100, increment=10)
        assert [seq.next_value() for _ in range(3)] == [100, 110, 120]

    def test_resume_from_last_value(self):
        seq = Sequence("s", "t", "c", last_value=41)
        assert seq.next_value() == 42

    def test_increment_must_be_positive(self):
        with pytest.raises(ValueError, match="increment"):
            Sequence("s", "t", "c", increment=0)

    def test_owned_by(self):
        seq = Sequence("s", "person", "id")
        assert seq.owned_by("person", "id")
        assert not seq.owned_by("person", "age")
        assert not seq.owned_by("orders", "id")
