from django.contrib import admin

from senaconnect.posts import models


@admin.register(models.Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "description"]
    search_fields = ["name"]


@admin.register(models.Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ["id", "title", "user", "created_at"]
    search_fields = ["title", "content", "user__email"]
    list_filter = ["categories", "created_at"]


@admin.register(models.Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ["id", "post", "user", "created_at"]
    search_fields = ["content", "user__email"]


@admin.register(models.Like)
class LikeAdmin(admin.ModelAdmin):
    list_display = ["id", "post", "user", "created_at"]
