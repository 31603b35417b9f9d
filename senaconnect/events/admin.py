from django.contrib import admin

from senaconnect.events import models


@admin.register(models.Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["id", "title", "user", "event_type", "start_date", "is_draft"]
    search_fields = ["title", "description", "location"]
    list_filter = ["event_type", "is_draft", "start_date"]
    filter_horizontal = ["attendees", "categories"]
