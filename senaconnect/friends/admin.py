from django.contrib import admin

from senaconnect.friends import models


@admin.register(models.FriendRequest)
class FriendRequestAdmin(admin.ModelAdmin):
    list_display = ["id", "sender", "receiver", "status", "created_at"]
    list_filter = ["status"]
    search_fields = ["sender__email", "receiver__email"]


@admin.register(models.Block)
class BlockAdmin(admin.ModelAdmin):
    list_display = ["id", "blocker", "blocked", "created_at"]
