from typing import Optional

import pytest
from sqlalchemy import ForeignKey, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


class Author(Base):
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)

    books: Mapped[list["Book"]] = relationship("Book", back_populates="author")


class Book(Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    subtitle: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    year: Mapped[Optional[int]] = mapped_column(nullable=True)
    author_id: Mapped[Optional[int]] = mapped_column(ForeignKey("authors.id"))

    author: Mapped[Optional["Author"]] = relationship("Author", back_populates="books")


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        le_guin = Author(id=1, name="Ursula Le Guin")
        pratchett = Author(id=2, name="Terry Pratchett")
        session.add_all([
            le_guin,
            pratchett,
            Book(id=1, title="Book: Part 1", year=1968, author=le_guin),
            Book(id=2, title="Book: Part 2", subtitle="Sequel", year=1971, author=le_guin),
            Book(id=3, title="Guards! Guards!", year=1989, author=pratchett),
            Book(id=4, title="Small Gods", subtitle="A Discworld Novel", year=1992, author=pratchett),
            Book(id=5, title="Mort", year=1987, author=pratchett),
        ])
        session.commit()
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


def ids(rows):
    return sorted(row.id for row in rows)
