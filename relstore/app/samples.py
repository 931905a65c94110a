"""Teaching schemas and sample rows.

``person`` follows the introductory script (CREATE TABLE, INSERT,
UPDATE, DELETE); the other schemas exercise defaults, generated keys,
UNIQUE, CHECK and FOREIGN KEY constraints.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from relstore.app.factory.column_factory import column
from relstore.domain.enums import DefaultExpression
from relstore.log import logger

if TYPE_CHECKING:
    from relstore.app.manager import Database

logger = logger.getChild(__name__)

PERSON_ROWS = [
    {"id": 101, "name": "Raju", "city": "Delhi"},
    {"id": 102, "name": "Amit", "city": "Mumbai"},
    {"id": 103, "name": "Neha", "city": "Pune"},
    {"id": 104, "name": "Sita", "city": "Bangalore"},
]


def create_person(db: "Database") -> None:
    db.create_table("person", [
        column("id", "INT", primary_key=True),
        column("name", "VARCHAR(100)"),
        column("city", "VARCHAR(100)"),
    ])
    db.insert("person", PERSON_ROWS[0])
    db.insert_many("person", PERSON_ROWS[1:])


def create_employees(db: "Database") -> None:
    db.create_table("employees", [
        column("id", "SERIAL", primary_key=True),
        column("name", "VARCHAR(100)", not_null=True),
        column("email", "VARCHAR(150)", unique=True),
        column("salary", "NUMERIC(10,2)", default=30000, check=(">", 0)),
        column("hire_date", "DATE", default=DefaultExpression.CURRENT_DATE),
    ])
    db.insert_many("employees", [
        {"name": "Asha", "email": "asha@example.com", "salary": 45000},
        {"name": "Vikram", "email": "vikram@example.com"},
    ])


def create_shop(db: "Database") -> None:
    db.create_table("customers", [
        column("id", "SERIAL", primary_key=True),
        column("name", "VARCHAR(100)", not_null=True),
        column("city", "VARCHAR(100)", default="Delhi"),
    ])
    db.create_table("products", [
        column("code", "CHAR(5)", primary_key=True),
        column("title", "VARCHAR(100)", not_null=True),
        column("price", "NUMERIC(8,2)", check=(">=", 0)),
    ])
    db.create_table("orders", [
        column("id", "SERIAL", primary_key=True),
        column("customer_id", "INT", not_null=True, references="customers"),
        column("product_code", "CHAR(5)", references="products(code)"),
        column("quantity", "INT", default=1, check=(">", 0)),
        column("ordered_at", "TIMESTAMP",
               default=DefaultExpression.CURRENT_TIMESTAMP),
    ])
    db.insert_many("customers", [
        {"name": "Raju", "city": "Delhi"},
        {"name": "Neha", "city": "Pune"},
    ])
    db.insert_many("products", [
        {"code": "PEN01", "title": "Gel pen", "price": "15.50"},
        {"code": "NB100", "title": "Notebook", "price": 60},
    ])
    db.insert_many("orders", [
        {"customer_id": 1, "product_code": "PEN01", "quantity": 3},
        {"customer_id": 2, "product_code": "NB100"},
    ])


@dataclass(frozen=True)
class Sample:
    """A sample builder and the first table it creates."""

    table: str
    build: Callable[["Database"], None]


SAMPLES: dict[str, Sample] = {
    "person": Sample("person", create_person),
    "employees": Sample("employees", create_employees),
    "shop": Sample("customers", create_shop),
}


def load_samples(
    db: "Database", names: Optional[Iterable[str]] = None
) -> list[str]:
    """Create sample schemas and their rows.

    Args:
        db: Target database.
        names: Sample names from SAMPLES; all of them when None.
               Samples whose first table already exists are skipped.

    Returns:
        Names of the samples that were created.

    Raises:
        KeyError: If a name is not a known sample.
    """
    created = []
    for name in names or SAMPLES:
        sample = SAMPLES[name]
        if db.registry.has_table(sample.table):
            logger.debug("sample %s already present", name)
            continue
        sample.build(db)
        created.append(name)
        logger.debug("created sample %s", name)
    return created


def person_walkthrough(db: "Database") -> None:
    """Replay the UPDATE and DELETE steps of the introductory script."""
    db.update("person", 101, {"city": "Noida"})
    db.update("person", 101, {"name": "Raj Kumar", "city": "Gurgaon"})
    db.delete("person", 104)
