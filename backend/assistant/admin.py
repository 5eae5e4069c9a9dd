from django.contrib import admin

from .models import WorkoutPlan


@admin.register(WorkoutPlan)
class WorkoutPlanAdmin(admin.ModelAdmin):
    list_display = ("title", "member", "created_at")
    search_fields = ("title", "member__email")
