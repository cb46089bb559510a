import pytest

from orderflow.core import dependencies

pytestmark = pytest.mark.core


class CountingRegistry:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def test_gateway_registry_is_shared_across_requests(monkeypatch):
    built = []

    def build():
        built.append(CountingRegistry())
        return built[-1]

    monkeypatch.setattr(dependencies, "_gateway_registry", None)
    monkeypatch.setattr(dependencies, "build_gateway_registry", build)

    first = dependencies.get_gateway_registry()
    second = dependencies.get_gateway_registry()
    assert first is second
    assert len(built) == 1

    dependencies.close_gateway_registry()
    assert first.closed
    assert dependencies.get_gateway_registry() is not first
    assert len(built) == 2
