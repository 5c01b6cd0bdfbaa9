"""Shared fixtures for order service tests."""

import pytest

from hasiri.shared.base_service import Config
from hasiri.orders.app import OrderService

from helpers import EARLIER, ORDER_ID, FakeStore


@pytest.fixture()
def config():
    config = Config()
    config.LOG_FORMAT = 'text'
    config.LOG_LEVEL = 'WARNING'
    config.LOG_DIR = ''
    config.LOG_PAYLOADS = False
    config.SERVICE_DATABASE_URL = 'postgresql://service_role@localhost:5432/hasiri'
    config.ORDER_RAW_FALLBACK_ENABLED = False
    config.ENABLE_METRICS = True
    return config


@pytest.fixture()
def store():
    store = FakeStore()
    store.add_order(ORDER_ID, items=[
        {
            'id': 'item-1',
            'order_id': ORDER_ID,
            'product_id': 'organic-neem-oil',
            'quantity': 2,
            'unit_price': 450.0,
            'total_price': 900.0,
            'created_at': EARLIER,
        },
        {
            'id': 'item-2',
            'order_id': ORDER_ID,
            'product_id': 'vermicompost-5kg',
            'quantity': 1,
            'unit_price': 350.0,
            'total_price': 350.0,
            'created_at': EARLIER,
        },
    ])
    return store


@pytest.fixture()
def service(config, store):
    return OrderService(config=config, db=store, service_db=store)


@pytest.fixture()
def client(service):
    return service.app.test_client()
