from django.contrib import admin

from .models import EmailInteraction


@admin.register(EmailInteraction)
class EmailInteractionAdmin(admin.ModelAdmin):
    list_display = ("prospect_email", "interaction_type", "tracking_id", "created_at")
    search_fields = ("prospect_email", "prospect_name", "tracking_id")
    list_filter = ("interaction_type",)
    readonly_fields = (
        "prospect_email",
        "prospect_name",
        "interaction_type",
        "email_subject",
        "tracking_id",
        "metadata",
        "created_at",
    )
