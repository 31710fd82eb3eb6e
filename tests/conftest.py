import json

import pytest

from kb_helpers import SHIPPED_KB_PATH
from studiobot.kb_models import KnowledgeBase


@pytest.fixture
def shipped_kb_data():
    return json.loads(SHIPPED_KB_PATH.read_text(encoding="utf-8"))


@pytest.fixture
def shipped_kb(shipped_kb_data):
    return KnowledgeBase.from_json(shipped_kb_data)
