"""
Pytest configuration and shared fixtures for the tag client tests.
"""
import os
import sys

import pytest

# Allow running the suite from a source checkout without installing
SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src'))
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from opc_tag_client.models.client_config import ClientConfig, ReconnectPolicy, TagDefinition  # noqa: E402
from opc_tag_client.models.tag_models import TagDataType  # noqa: E402

EXAMPLES_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'examples'))


@pytest.fixture
def gantry_config_path():
    return os.path.join(EXAMPLES_DIR, 'codesys_gantry.json')


@pytest.fixture
def small_config():
    """Three-tag catalog with a fast reconnect interval."""
    return ClientConfig(
        endpoint="opc.tcp://127.0.0.1:4840",
        reconnect=ReconnectPolicy(interval_s=0.01),
        tags=[
            TagDefinition("Power_system", TagDataType.BOOLEAN, "ns=4;s=PLC_PRG.Power_system"),
            TagDefinition("X_postion", TagDataType.DOUBLE, "ns=4;s=PLC_PRG.Position.X"),
            TagDefinition("Counter", TagDataType.INT16, "ns=4;s=PLC_PRG.Counter"),
        ],
    )
