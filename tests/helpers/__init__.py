"""Test helpers: fake WordPress server and scriptable AI backend."""

from tests.helpers.fake_ai import FakeAIProvider
from tests.helpers.fake_wordpress import FakeWordPress

__all__ = ["FakeAIProvider", "FakeWordPress"]
