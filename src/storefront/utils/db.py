import os

from protean.domain import Domain
from sqlalchemy import create_engine

from storefront.inventory.store.sql_adapter import metadata as stock_metadata
from storefront.shared.keys.sql_adapter import metadata as keys_metadata

_SQL_PROVIDERS = ("sqlite", "postgresql")


def _register_models(domain: Domain, provider) -> None:
    # Accessing _dao makes the provider build (and register) the SQLAlchemy model
    for _, aggregate_record in domain.registry.aggregates.items():
        if aggregate_record.cls.meta_.provider == provider.name:
            domain.repository_for(aggregate_record.cls)._dao  # noqa: B018

    for _, entity_record in domain.registry.entities.items():
        if entity_record.cls.meta_.provider == provider.name:
            domain.repository_for(entity_record.cls)._dao  # noqa: B018


def setup_db(domain: Domain):
    """Create aggregate tables plus the stock and key-store tables."""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in _SQL_PROVIDERS:
                engine = create_engine(provider.conn_info["database_uri"])
                _register_models(domain, provider)
                provider._metadata.create_all(engine)

    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
        stock_metadata.create_all(engine)
        keys_metadata.create_all(engine)


def drop_db(domain: Domain):
    """Drop everything ``setup_db`` created."""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in _SQL_PROVIDERS:
                engine = create_engine(provider.conn_info["database_uri"])
                provider._metadata.drop_all(engine)

    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
        stock_metadata.drop_all(engine)
        keys_metadata.drop_all(engine)
