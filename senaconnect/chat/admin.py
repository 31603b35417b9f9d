from django.contrib import admin

from senaconnect.chat import models


@admin.register(models.Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ["id", "created_at", "updated_at"]
    filter_horizontal = ["participants"]


@admin.register(models.Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ["id", "conversation", "sender", "text", "created_at"]
    search_fields = ["text", "sender__email"]
    list_filter = ["created_at"]
