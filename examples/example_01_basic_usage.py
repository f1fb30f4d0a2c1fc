"""Example 01: Basic Usage - modelstore Fundamentals.

This example demonstrates the fundamental operations:
- Defining models using the Model base class with Field[T] annotations
- Registering model descriptors explicitly
- Writing models with datastore.put() and reading them back
- Polymorphic queries with remote and in-memory criteria
- Transactions over an ancestor group
"""

import logging
import os

from modelstore import Datastore, Field, Key, Model, ModelMetaRegistry, SqliteStore


# Step 1: Define model types
# The primary key field holds a Key; leaving it unset lets the store assign an id.
class Person(Model):
    """A person in our system."""

    key: Field[Key | None] = Field(primary_key=True)
    name: Field[str]
    age: Field[int]
    email: Field[str | None] = None
    version: Field[int] = Field(default=0, version=True)


class Employee(Person):
    """Stored under the Person kind, tagged with its class hierarchy."""

    company: Field[str] = ""


def main():
    """Run the basic usage example."""
    logging.basicConfig(level=logging.WARNING)
    os.makedirs("tmp", exist_ok=True)

    # Step 2: Register descriptors
    # Models living in a ``.model.`` package are found by naming convention;
    # models defined elsewhere are registered explicitly.
    registry = ModelMetaRegistry()
    registry.register(Person)
    registry.register(Employee)

    with Datastore(SqliteStore("tmp/basic_usage.db"), registry) as ds:
        # Step 3: Write
        alice = Person(name="Alice Smith", age=32, email="alice@example.com")
        ds.put(alice)
        print(f"Stored {alice.name} under {alice.key} (version {alice.version})")

        ds.put_all([
            Person(name="Bob Jones", age=45),
            Employee(name="Carol White", age=29, company="Acme", email="carol@acme.io"),
        ])

        # Step 4: Read back
        same = ds.get(Person, alice.key)
        print(f"Read back equal model: {same == alice}")

        # Step 5: Query
        # Remote criteria narrow the store query, endswith runs in memory.
        person = registry.resolve(Person)
        adults = ds.query(Person).filter(person.age >= 30).sort(person.age.desc).as_list()
        print("Age >= 30:", [p.name for p in adults])

        dotcom = ds.query(Person).filter(person.email.endswith(".com")).as_list()
        print("Email ends with .com:", [p.name for p in dotcom])

        employees = ds.query(Employee).as_list()
        print("Employees:", [(e.name, e.company) for e in employees])
        print("Oldest age:", ds.query(Person).max(person.age))

        # Step 6: Transactions
        # Queries inside a transaction are ancestor queries.
        team = Key("Team", name="core")
        tx = ds.begin_transaction()
        ds.put(Person(key=Key("Person", id=1, parent=team), name="Dana", age=38), tx)
        ds.commit(tx)
        print("Team members:", ds.query(Person, ancestor=team).count())


if __name__ == "__main__":
    main()
