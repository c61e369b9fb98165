import logging
from datetime import date

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from document_framework import DictDriver, MetadataRegistry, Store
from document_framework.storages.sqlalchemy import SqlAlchemyPersister


logging.basicConfig(level=logging.DEBUG)


TYPES = {
    "subscriber": {
        "entity": {"persistence": {"key": "sql"}},
        "attributes": {
            "name": {"type": "string"},
            "status": {"type": "string", "defaultValue": "new"},
        },
        "relationships": {
            "plan": {"type": "one", "entity": "plan"},
            "subscriptions": {"type": "many", "entity": "subscription", "inverse": True, "field": "subscriber"},
        },
        "embeds": {"address": {"type": "one", "entity": "address"}},
    },
    "plan": {
        "entity": {"persistence": {"key": "sql"}},
        "attributes": {"discount": {"type": "float"}, "tier": {"type": "integer"}},
    },
    "subscription": {
        "entity": {"polymorphic": True, "persistence": {"key": "sql"}},
        "attributes": {"start": {"type": "date"}, "cancelledAt": {"type": "date"}},
        "relationships": {"subscriber": {"type": "one", "entity": "subscriber"}},
    },
    "subscription-lifetime": {"entity": {"extends": "subscription"}},
}

EMBEDS = {"address": {"attributes": {"street": {"type": "string"}, "city": {"type": "string"}}}}


engine = create_engine("sqlite://", echo=True)
Base = declarative_base()
session = sessionmaker(bind=engine)()

registry = MetadataRegistry(DictDriver(TYPES, embeds=EMBEDS))
persister = SqlAlchemyPersister(session, Base, key="sql")
for metadata in registry.get_all_metadata():
    persister.create_schemata(metadata)

store = Store(registry, [persister])

plan = store.create("plan")
plan.apply({"discount": 0.2, "tier": 1})
plan.save()

subscriber = store.create("subscriber", "seba")
subscriber.apply({"name": "Seba", "plan": plan, "address": {"street": "Main", "city": "Krakow"}})
subscriber.save()

subscription = store.create("subscription-lifetime")
subscription.apply({"start": date.today().isoformat(), "subscriber": subscriber})
subscription.save()

session.commit()

# a second store has its own identity map, so everything below comes back from the database
other_store = Store(registry, [persister])
got_subscriber = other_store.find("subscriber", "seba")

assert got_subscriber.get("status") == "new"
assert got_subscriber.get("plan").get("tier") == 1
assert got_subscriber.get("address").get("city") == "Krakow"
assert [model.type for model in got_subscriber.get("subscriptions")] == ["subscription-lifetime"]

cancelled = got_subscriber.get("subscriptions")[0]
cancelled.set("cancelledAt", date.today().isoformat())
cancelled.save()
session.commit()

assert other_store.find_by_query("subscription", {"subscriber": "seba"}).single_result().get("cancelledAt") is not None

session.close()
Base.metadata.drop_all(engine)
