from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class Conversation(models.Model):
    participants = models.ManyToManyField(
        settings.AUTH_USER_MODEL, related_name="conversations"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at", "-id"]

    def __str__(self):
        return f"Conversation({self.pk})"


class Message(models.Model):
    conversation = models.ForeignKey(
        Conversation, on_delete=models.CASCADE, related_name="messages"
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="messages"
    )
    text = models.TextField(_("Text"), blank=True)
    image = models.ImageField(_("Image"), upload_to="chat/", blank=True)
    image_url = models.CharField(_("Image URL"), max_length=500, blank=True)
    seen_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL, related_name="seen_messages", blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Message({self.pk}) in {self.conversation_id}"

    @property
    def resolved_image_url(self) -> str | None:
        if self.image:
            return self.image.url
        return self.image_url or None
