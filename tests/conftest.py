import pytest

from fakes import FakeInferencer, FakeStore


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def inferencer() -> FakeInferencer:
    return FakeInferencer()
