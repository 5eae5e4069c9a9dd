from django.urls import path

from .views import (
    ChurnChatView,
    LoyaltyOffersView,
    RetentionStrategiesView,
    SalesEmailView,
    UserWorkoutPlansView,
    WorkoutPlanView,
)

urlpatterns = [
    path("ai/retention-strategies", RetentionStrategiesView.as_view(), name="ai-retention-strategies"),
    path("ai/generate-loyalty-offers", LoyaltyOffersView.as_view(), name="ai-loyalty-offers"),
    path("ai/sales-email", SalesEmailView.as_view(), name="ai-sales-email"),
    path("ai/chat", ChurnChatView.as_view(), name="ai-chat"),
    path("ai/workout-plan", WorkoutPlanView.as_view(), name="ai-workout-plan"),
    path("user/workout-plans", UserWorkoutPlansView.as_view(), name="user-workout-plans"),
]
