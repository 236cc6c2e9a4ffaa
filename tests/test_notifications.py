from __future__ import annotations

import pytest
from starlette.websockets import WebSocketState

from carpet_inventory.schemas.inventory import StockAdjustment
from carpet_inventory.services.notifications import INVENTORY_TOPIC, StockEventNotifier, stock_notifier
from carpet_inventory.services.raw_materials import RawMaterialService
from carpet_inventory.services.units import UnitService
from tests import factories


class FakeWebSocket:
    def __init__(self, fail: bool = False) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED
        self.fail = fail
        self.sent = []

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


@pytest.fixture
async def subscriber():
    ws = FakeWebSocket()
    await stock_notifier.connect(INVENTORY_TOPIC, ws)
    yield ws
    await stock_notifier.disconnect(INVENTORY_TOPIC, ws)


async def test_low_stock_event_is_sent_only_after_commit(session, subscriber):
    product, units = await factories.tracked_product(session, units=3, min_stock_level=2)
    svc = UnitService(session)

    await svc.mark_damaged([units[0].id, units[1].id])
    assert subscriber.sent == []

    await svc.commit()

    assert len(subscriber.sent) == 1
    message = subscriber.sent[0]
    assert message["type"] == "stock.low"
    assert message["payload"]["entity_type"] == "product"
    assert message["payload"]["entity_id"] == product.id
    assert message["payload"]["status"] == "low-stock"
    assert message["payload"]["current_stock"] == 1


async def test_rolled_back_changes_are_never_announced(session, subscriber):
    _, units = await factories.tracked_product(session, units=3, min_stock_level=2)
    svc = UnitService(session)

    await svc.mark_damaged([units[0].id, units[1].id])
    await svc.rollback()
    await svc.commit()

    assert subscriber.sent == []


async def test_restock_event_for_raw_material(session, subscriber):
    material = await factories.raw_material(session, current_stock=50, min_threshold=100)
    svc = RawMaterialService(session)

    await svc.adjust_stock(material.id, StockAdjustment(quantity=200))
    await svc.commit()

    assert [m["type"] for m in subscriber.sent] == ["stock.restocked"]
    assert subscriber.sent[0]["payload"]["entity_type"] == "raw_material"
    assert subscriber.sent[0]["payload"]["status"] == "in-stock"


async def test_broadcast_drops_failing_sockets():
    notifier = StockEventNotifier()
    good, bad = FakeWebSocket(), FakeWebSocket(fail=True)
    await notifier.connect("t", good)
    await notifier.connect("t", bad)

    assert await notifier.broadcast("t", {"type": "ping"}) == 1
    assert notifier.subscriber_count("t") == 1
    assert good.sent == [{"type": "ping"}]


async def test_broadcast_to_unknown_topic_is_a_noop():
    assert await StockEventNotifier().broadcast("nobody", {"type": "x"}) == 0
