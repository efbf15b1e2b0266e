import pytest

import harness

harness.STRICT = True


@pytest.fixture(autouse=True)
def _clear_event_bus():
    from savesmith.save_editor.events import EventBus
    EventBus.clear()
    yield
    EventBus.clear()
