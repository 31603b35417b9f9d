from io import StringIO

import pytest
from django.core.management import call_command

from senaconnect.posts.management.commands.seed_categories import EVENT_CATEGORIES
from senaconnect.posts.management.commands.seed_categories import POST_CATEGORIES
from senaconnect.posts.models import Category

pytestmark = pytest.mark.django_db


def test_seed_categories_is_idempotent():
    out = StringIO()
    call_command("seed_categories", stdout=out)
    call_command("seed_categories", stdout=out)

    assert Category.objects.count() == len(POST_CATEGORIES) + len(EVENT_CATEGORIES)
    assert f"Categories seeded ({len(POST_CATEGORIES) + len(EVENT_CATEGORIES)} new)" in (
        out.getvalue()
    )
    assert "Categories seeded (0 new)" in out.getvalue()


def test_seed_only_events():
    call_command("seed_categories", "--only", "events", stdout=StringIO())

    names = set(Category.objects.values_list("name", flat=True))
    assert names == {name for name, _description in EVENT_CATEGORIES}
