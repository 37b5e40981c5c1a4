from typing import Generator

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.db import create_cache_engine, init_cache_db
from db.models import Base
from services.cache import MemoryCacheStore, TwoTierCache
from services.price_service import AssetPriceService, PricingContext
from services.synthetic_source import SyntheticPriceSource
from tests.helpers.fakes import FIXED_NOW, FakeClock, FixedFxRates, StubHistoricalSource, StubLiveSource

engine: Engine = create_cache_engine("sqlite:///:memory:")
session_factory: sessionmaker[Session] = init_cache_db(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_cache(clock: FakeClock) -> TwoTierCache:
    return TwoTierCache(memory=MemoryCacheStore(clock=clock))


@pytest.fixture()
def synthetic() -> SyntheticPriceSource:
    return SyntheticPriceSource(fx=FixedFxRates(), now=lambda: FIXED_NOW)


@pytest.fixture()
def live_source() -> StubLiveSource:
    return StubLiveSource()


@pytest.fixture()
def historical_source() -> StubHistoricalSource:
    return StubHistoricalSource()


@pytest.fixture()
def price_service(
    memory_cache: TwoTierCache,
    synthetic: SyntheticPriceSource,
    live_source: StubLiveSource,
    historical_source: StubHistoricalSource,
) -> AssetPriceService:
    return AssetPriceService(
        live_sources=[live_source],
        historical_sources=[historical_source],
        synthetic=synthetic,
        context=PricingContext(cache=memory_cache),
    )
