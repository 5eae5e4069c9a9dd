from django.db import migrations

SEED_OFFERS = [
    ("Premium Protein Shake", "High-quality whey protein shake in your choice of flavour.", 200, "Nutrition"),
    ("Branded Gym Towel", "ClubPulse branded microfibre towel.", 150, "Merchandise"),
    ("Premium Water Bottle", "Insulated stainless steel bottle with the ClubPulse logo.", 250, "Merchandise"),
    ("Smoothie Bar Credit", "£12 credit toward smoothies and healthy snacks at the juice bar.", 300, "Nutrition"),
    ("Group Fitness Class (5-Pack)", "Five additional group classes: yoga, pilates, spin or HIIT.", 400, "Classes"),
    ("Exclusive Workshop Access", "Members-only workshops on nutrition, mindfulness and fitness.", 500, "Education"),
    ("Wellness Massage (30 min)", "Therapeutic massage for muscle recovery and stress relief.", 650, "Wellness"),
    ("Personal Training Session", "One-to-one 60 minute session with a certified trainer.", 800, "Training"),
]


def seed_offers(apps, schema_editor):
    LoyaltyOffer = apps.get_model("loyalty", "LoyaltyOffer")
    if LoyaltyOffer.objects.exists():
        return
    for title, description, points, category in SEED_OFFERS:
        LoyaltyOffer.objects.create(
            title=title,
            description=description,
            points=points,
            category=category,
        )


class Migration(migrations.Migration):
    dependencies = [
        ("loyalty", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_offers, migrations.RunPython.noop),
    ]
