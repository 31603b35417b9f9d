from django.contrib import admin

from senaconnect.users.models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ["id", "email", "username", "name", "is_staff", "is_active"]
    search_fields = ["email", "username", "name"]
    list_filter = ["is_staff", "is_active", "created_at"]
    exclude = ["password", "user_permissions"]
