import django_filters

from senaconnect.events.models import Event


class EventFilter(django_filters.FilterSet):
    eventType = django_filters.ChoiceFilter(  # noqa: N815
        field_name="event_type", choices=Event.EventType.choices
    )
    categoryId = django_filters.NumberFilter(  # noqa: N815
        field_name="categories__id", distinct=True
    )
    startDateFrom = django_filters.DateTimeFilter(  # noqa: N815
        field_name="start_date", lookup_expr="gte"
    )
    startDateTo = django_filters.DateTimeFilter(  # noqa: N815
        field_name="start_date", lookup_expr="lte"
    )

    class Meta:
        model = Event
        fields = ["eventType", "categoryId", "startDateFrom", "startDateTo"]
