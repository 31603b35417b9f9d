from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from senaconnect.posts.models import Category


class Event(models.Model):
    class EventType(models.TextChoices):
        CONFERENCE = "conference", _("Conference")
        WORKSHOP = "workshop", _("Workshop")
        SEMINAR = "seminar", _("Seminar")
        SOCIAL = "social", _("Social")
        SPORTS = "sports", _("Sports")
        CULTURAL = "cultural", _("Cultural")
        OTHER = "other", _("Other")

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="events"
    )
    title = models.CharField(_("Title"), max_length=255)
    description = models.TextField(_("Description"))
    image = models.ImageField(_("Image"), upload_to="events/", blank=True)
    location = models.CharField(_("Location"), max_length=255)
    start_date = models.DateTimeField(_("Starts at"))
    end_date = models.DateTimeField(_("Ends at"))
    max_attendees = models.PositiveIntegerField(_("Max attendees"), null=True, blank=True)
    is_draft = models.BooleanField(_("Draft"), default=True)
    event_type = models.CharField(
        _("Event type"), max_length=20, choices=EventType.choices, default=EventType.OTHER
    )
    attendees = models.ManyToManyField(
        settings.AUTH_USER_MODEL, related_name="registered_events", blank=True
    )
    categories = models.ManyToManyField(Category, related_name="events", blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["start_date", "id"]

    def __str__(self):
        return self.title

    @property
    def is_full(self) -> bool:
        if self.max_attendees is None:
            return False
        return self.attendees.count() >= self.max_attendees
