from __future__ import annotations

import mongomock
import pytest
from mongoengine import connect, disconnect
from mongoengine.connection import get_connection


TEST_DB = "hostel_test"


@pytest.fixture(autouse=True)
def mongo():
    connect(TEST_DB, host="mongodb://localhost", alias="default", mongo_client_class=mongomock.MongoClient)
    yield
    get_connection(alias="default").drop_database(TEST_DB)
    disconnect(alias="default")
