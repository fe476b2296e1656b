"""Shared fixtures: an in-memory world with one founded company."""

import pytest

from companies.company import Company, WorldServices
from companies.config import CompaniesConfig
from companies.models.world import Citizen
from companies.registry import CompanyRegistry
from companies.world.messaging import InMemoryMessenger
from companies.world.registrar import World
from companies.world.reputation import InMemoryReputation
from companies.world.scheduler import ManualScheduler


@pytest.fixture
def config() -> CompaniesConfig:
    return CompaniesConfig()


@pytest.fixture
def services(config: CompaniesConfig) -> WorldServices:
    return WorldServices.in_memory(config)


@pytest.fixture
def registry(services: WorldServices, config: CompaniesConfig) -> CompanyRegistry:
    return CompanyRegistry(services, config)


@pytest.fixture
def world(services: WorldServices) -> World:
    return services.world


@pytest.fixture
def messenger(services: WorldServices) -> InMemoryMessenger:
    return services.messenger


@pytest.fixture
def scheduler(services: WorldServices) -> ManualScheduler:
    return services.scheduler


@pytest.fixture
def books(services: WorldServices) -> InMemoryReputation:
    return services.reputation


@pytest.fixture
def alice(world: World) -> Citizen:
    return world.create_citizen("Alice")


@pytest.fixture
def bob(world: World) -> Citizen:
    return world.create_citizen("Bob")


@pytest.fixture
def carol(world: World) -> Citizen:
    return world.create_citizen("Carol")


@pytest.fixture
def dave(world: World) -> Citizen:
    return world.create_citizen("Dave")


@pytest.fixture
def company(registry: CompanyRegistry, alice: Citizen) -> Company:
    """Acme, founded by Alice."""
    return registry.create_company("Acme", alice)
