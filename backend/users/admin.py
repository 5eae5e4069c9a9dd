from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "role", "membership_type", "loyalty_points", "last_visit")
    list_filter = ("role", "membership_type")
    search_fields = ("username", "email", "first_name", "last_name")
    fieldsets = BaseUserAdmin.fieldsets + (
        (
            "Membership",
            {"fields": ("role", "membership_type", "loyalty_points", "join_date", "last_visit")},
        ),
    )
