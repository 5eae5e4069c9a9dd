from django.contrib import admin

from .models import ChurnEmail, OutreachAction


@admin.register(ChurnEmail)
class ChurnEmailAdmin(admin.ModelAdmin):
    list_display = ("subject", "member", "risk_level", "current_risk_band", "status", "created_at")
    search_fields = ("subject", "member__email", "member__last_name")
    list_filter = ("status", "risk_level")
    readonly_fields = ("member_profile", "approved_by", "approved_at", "sent_at", "tracking_id")


@admin.register(OutreachAction)
class OutreachActionAdmin(admin.ModelAdmin):
    list_display = ("member", "staff", "action_type", "created_at")
    search_fields = ("member__email", "notes")
    list_filter = ("action_type",)
