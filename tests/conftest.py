"""
Shared fixtures for pipeline mapper tests.
"""

from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from pipeline_mapper.infrastructure.config.settings import BackendSettings
from pipeline_mapper.pipeline_graph.graph_store import GraphStore
from pipeline_mapper.pipeline_graph.models import Connection, Position
from pipeline_mapper.pipeline_graph.registry import NodeRegistry


@pytest.fixture
def registry():
    return NodeRegistry()


@pytest.fixture
def store(registry):
    return GraphStore(registry)


@pytest.fixture
def abc_store(store):
    """
    read-file (A) -> column-selector (B), plus an unconnected table-output (C).

    A.output and B.input are both DataFrame; B.output is Series and
    C.input is COREModel.
    """
    a = store.add_node("read-file", Position(100, 100))
    b = store.add_node("column-selector", Position(300, 100))
    c = store.add_node("table-output", Position(500, 100))
    assert store.add_connection(Connection(a.outputs[0].id, b.inputs[0].id))
    return store


@pytest.fixture
def core_pipeline(store):
    """
    A fully configured, valid pipeline ending in the CORE metamodel:

    id-gen -> iot-event -> core-metamodel -> table-output
    """
    id_gen = store.add_node("unique-id-generator", Position(50, 50))
    event = store.add_node("iot-event", Position(250, 50))
    metamodel = store.add_node("core-metamodel", Position(450, 50))
    table = store.add_node("table-output", Position(650, 50))

    store.update_node_config(id_gen.id, "idType", "UUID4")
    store.add_connection(Connection(id_gen.outputs[0].id, event.inputs[0].id))
    store.add_connection(Connection(event.outputs[0].id, metamodel.inputs[1].id))
    store.add_connection(Connection(metamodel.outputs[0].id, table.inputs[0].id))
    return store


@pytest.fixture
def backend():
    """
    Factory for a throwaway execution backend.

    Usage::

        async with backend([("GET", "/api/health", handler)]) as settings:
            client = RemoteExecutionClient(settings)
    """
    @asynccontextmanager
    async def start(routes, **overrides):
        app = web.Application()
        for method, path, handler in routes:
            app.router.add_route(method, path, handler)

        server = TestServer(app)
        await server.start_server()
        try:
            yield BackendSettings(base_url=str(server.make_url("/api")), **overrides)
        finally:
            await server.close()

    return start


@pytest.fixture
def unreachable_backend():
    """Settings pointing at a port nothing listens on."""
    async def make():
        server = TestServer(web.Application())
        await server.start_server()
        url = str(server.make_url("/api"))
        await server.close()
        return BackendSettings(base_url=url, connect_timeout_seconds=1.0, timeout_seconds=2.0)

    return make
