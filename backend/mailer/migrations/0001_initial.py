from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="EmailInteraction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("prospect_email", models.EmailField(max_length=254)),
                ("prospect_name", models.CharField(blank=True, max_length=255)),
                (
                    "interaction_type",
                    models.CharField(
                        choices=[
                            ("email_sent", "Email sent"),
                            ("link_clicked", "Link clicked"),
                            ("tour_viewed", "Tour viewed"),
                        ],
                        max_length=20,
                    ),
                ),
                ("email_subject", models.CharField(blank=True, max_length=255)),
                ("tracking_id", models.CharField(db_index=True, max_length=64)),
                ("metadata", models.JSONField(default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["prospect_email", "-created_at"], name="interaction_prospect_idx")],
            },
        ),
    ]
