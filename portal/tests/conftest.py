import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from portal.tests.factories import make_admin, make_doctor, make_patient


@pytest.fixture(autouse=True)
def _fresh_cache():
    # Throttle counters and directory pages live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def patient(db):
    return make_patient()


@pytest.fixture
def doctor(db):
    return make_doctor()


@pytest.fixture
def admin(db):
    return make_admin()
