"""Tests for the first_successful fallback chain."""

import pytest

from webpilot.fallback import first_successful


class TestFirstSuccessful:
    """Tests for first_successful."""

    @pytest.mark.asyncio
    async def test_returns_first_truthy_result(self):
        """Test the first non-empty result wins."""
        calls = []

        def strategy(name, value):
            async def run():
                calls.append(name)
                return value
            return (name, run)

        result = await first_successful(
            [strategy("a", None), strategy("b", ""), strategy("c", "found"), strategy("d", "later")]
        )

        assert result == "found"
        assert calls == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_later_strategies_not_invoked(self):
        """Test strategies after a success are never evaluated."""
        async def first():
            return "ok"

        async def second():
            raise AssertionError("should not run")

        assert await first_successful([first, second]) == "ok"

    @pytest.mark.asyncio
    async def test_exception_treated_as_empty(self):
        """Test a raising strategy does not stop the chain."""
        async def broken():
            raise ConnectionError("refused")

        async def working():
            return 42

        assert await first_successful([("broken", broken), ("working", working)]) == 42

    @pytest.mark.asyncio
    async def test_all_empty(self):
        """Test None is returned when nothing succeeds."""
        async def empty():
            return None

        assert await first_successful([empty, empty]) is None

    @pytest.mark.asyncio
    async def test_no_strategies(self):
        """Test an empty chain returns None."""
        assert await first_successful([]) is None
