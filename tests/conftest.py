import pytest

from jpe_cpsc.controller.context import BaseContext
from jpe_cpsc.protocol.connection import Connection
from jpe_cpsc.protocol.logger import get_protocol_logger
from tests.scripted import MODLIST_REPLY, ScriptedChannel


@pytest.fixture(autouse=True)
def clean_protocol_log():
    get_protocol_logger().clear()
    yield
    get_protocol_logger().clear()


@pytest.fixture
def make_context():
    """
    Factory for a BaseContext over a ScriptedChannel.

    Unless ``with_modules`` is False the module table is loaded from the
    default /MODLIST reply first and that exchange is dropped from the log.
    """

    def factory(*replies, with_modules=True, chunk_size=64, read_timeout=0.05):
        channel = ScriptedChannel(chunk_size=chunk_size)
        context = BaseContext(Connection(channel, read_timeout=read_timeout))
        if with_modules:
            channel.queue(MODLIST_REPLY)
            context.get_module_list()
            channel.reset_log()
        channel.queue(*replies)
        return context, channel

    return factory
