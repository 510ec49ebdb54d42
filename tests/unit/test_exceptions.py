"""Tests for ratesync.core.exceptions."""

import pytest

from ratesync.core.exceptions import (
    ConfigError,
    DataUnavailableError,
    InsufficientDataError,
    NetworkError,
    RateSyncError,
    StorageError,
    ValidationError,
)


class TestExceptionHierarchy:
    """Verify the exception class hierarchy."""

    @pytest.mark.parametrize(
        "cls",
        [
            ConfigError,
            NetworkError,
            ValidationError,
            StorageError,
            DataUnavailableError,
            InsufficientDataError,
        ],
    )
    def test_subclass_of_base(self, cls):
        assert issubclass(cls, RateSyncError)
        assert issubclass(cls, Exception)

    def test_kinds_are_distinct(self):
        assert not issubclass(NetworkError, DataUnavailableError)
        assert not issubclass(InsufficientDataError, DataUnavailableError)
        assert not issubclass(ValidationError, StorageError)

    def test_not_pydantic_validation_error(self):
        from pydantic import ValidationError as PydanticValidationError

        assert not issubclass(ValidationError, PydanticValidationError)


class TestExceptionContext:
    def test_message(self):
        e = NetworkError("source unreachable")
        assert str(e) == "source unreachable"

    def test_default_context_is_empty(self):
        e = StorageError("boom")
        assert e.context == {}

    def test_context_preserved(self):
        e = InsufficientDataError(
            "need 7 days",
            context={"required_days": 7, "window_end": "2024-01-10"},
        )
        assert e.context["required_days"] == 7
        assert e.context["window_end"] == "2024-01-10"

    def test_catch_by_base(self):
        with pytest.raises(RateSyncError):
            raise DataUnavailableError("nothing cached", context={"shape": "current"})

    def test_chained_cause(self):
        try:
            try:
                raise OSError("disk full")
            except OSError as inner:
                raise StorageError("write failed") from inner
        except StorageError as e:
            assert isinstance(e.__cause__, OSError)
