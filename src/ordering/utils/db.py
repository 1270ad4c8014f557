from protean.domain import Domain
from sqlalchemy import create_engine

DURABLE_PROVIDERS = ("sqlite", "postgresql")


def durable_providers(domain: Domain):
    """Providers backed by a SQL database (memory providers are skipped)."""
    return [provider for provider in domain.providers.values() if provider.conn_info["provider"] in DURABLE_PROVIDERS]


def _register_tables(domain: Domain, provider):
    # Touching a repository's DAO registers its table with the provider's metadata
    for _, aggregate_record in domain.registry.aggregates.items():
        if aggregate_record.cls.meta_.provider == provider.name:
            domain.repository_for(aggregate_record.cls)._dao  # noqa: B018
    for _, entity_record in domain.registry.entities.items():
        if entity_record.cls.meta_.provider == provider.name:
            domain.repository_for(entity_record.cls)._dao  # noqa: B018


def setup_db(domain: Domain):
    """Setup database schema for orders and inventory"""
    with domain.domain_context():
        for provider in durable_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_tables(domain, provider)
            provider._metadata.create_all(engine)
            engine.dispose()


def drop_db(domain: Domain):
    """Drop database schema"""
    with domain.domain_context():
        for provider in durable_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_tables(domain, provider)
            provider._metadata.drop_all(engine)
            engine.dispose()
