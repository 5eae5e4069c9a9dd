import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="LoyaltyOffer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField()),
                ("points", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ("category", models.CharField(max_length=100)),
                ("is_active", models.BooleanField(default=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="created_offers", to=settings.AUTH_USER_MODEL)),
            ],
            options={"ordering": ["points"]},
        ),
        migrations.CreateModel(
            name="OfferRedemption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("points_spent", models.PositiveIntegerField()),
                ("redeemed_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("member", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="redemptions", to=settings.AUTH_USER_MODEL)),
                ("offer", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="redemptions", to="loyalty.loyaltyoffer")),
            ],
            options={"ordering": ["-redeemed_at"]},
        ),
        migrations.AddConstraint(
            model_name="offerredemption",
            constraint=models.UniqueConstraint(fields=("member", "offer"), name="unique_redemption_per_member_offer"),
        ),
    ]
