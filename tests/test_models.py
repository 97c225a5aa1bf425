"""Tests for index records."""

from datetime import date, datetime, timezone

import pytest

from campdex.models import (
    Card,
    Column,
    ColumnType,
    Index,
    Meta,
    Person,
    Project,
    composite_key,
    parse_date,
    parse_datetime,
)

TODAY = date(2024, 6, 15)


def _card(**kwargs):
    return Card(id=1, project_id=10, column_id=100, title="Card", **kwargs)


def test_composite_keys():
    assert composite_key(12, 345) == "12_345"
    assert _card().key == "10_1"
    assert Column(id=7, project_id=10, title="Done").key == "10_7"


@pytest.mark.parametrize(
    "due,completed,overdue,days",
    [
        (date(2024, 6, 10), False, True, 5),
        (date(2024, 6, 14), False, True, 1),
        (date(2024, 6, 15), False, False, 0),
        (date(2024, 6, 20), False, False, 0),
        (date(2024, 6, 1), True, False, 0),
        (None, False, False, 0),
    ],
)
def test_overdue(due, completed, overdue, days):
    card = _card(due_on=due, completed=completed)
    assert card.is_overdue(TODAY) is overdue
    assert card.days_overdue(TODAY) == days


def test_column_emoji():
    assert Column(id=1, project_id=1, title="QA", type=ColumnType.TESTING).emoji == "🧪"
    assert ColumnType.OTHER.emoji == "📊"


def test_project_has_board():
    assert Project(id=1, name="A", board_id=1000).has_board
    assert not Project(id=2, name="B").has_board


def test_card_dict_keeps_dates_as_iso_strings():
    card = _card(
        due_on=date(2024, 6, 1),
        column_type=ColumnType.DONE,
        assignee_ids=[11],
        assignee_names=["Alice"],
        created_at=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
    )
    data = card.to_dict()
    assert data["due_on"] == "2024-06-01"
    assert data["column_type"] == "done"
    assert data["updated_at"] is None
    assert Card.from_dict(data) == card


def test_person_and_meta_dicts():
    person = Person(id=11, name="Alice", email="alice@example.com", title="Project Lead")
    assert Person.from_dict(person.to_dict()) == person

    meta = Meta(started_at=datetime(2024, 6, 15, 8, 0, tzinfo=timezone.utc), total_cards=3, account_id="999")
    restored = Meta.from_dict(meta.to_dict())
    assert restored == meta
    assert Meta.from_dict({}) == Meta()


def test_refresh_meta_counts():
    index = Index()
    index.add_project(Project(id=10, name="A"))
    index.add_column(Column(id=100, project_id=10, title="Todo"))
    index.add_card(_card())
    index.add_card(Card(id=2, project_id=10, column_id=100, title="Other"))
    index.add_person(Person(id=11, name="Alice"))
    index.refresh_meta_counts()
    assert (index.meta.total_projects, index.meta.total_columns, index.meta.total_cards, index.meta.total_people) == (
        1,
        1,
        2,
        1,
    )
    assert set(index.cards) == {"10_1", "10_2"}


def test_parse_helpers():
    assert parse_date("2024-06-01") == date(2024, 6, 1)
    assert parse_date("2024-06-01T10:00:00Z") == date(2024, 6, 1)
    assert parse_date("") is None
    assert parse_datetime("2024-06-01T10:00:00Z") == datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)
    assert parse_datetime(None) is None
    with pytest.raises(ValueError):
        parse_date("June 1st")
