from django.contrib.auth.hashers import make_password
from django.db import migrations
import os


def create_superuser(apps, schema_editor):
    User = apps.get_model("authentication", "User")

    email = os.environ.get("DJANGO_SUPERUSER_EMAIL", "admin@chainsync.local")
    password = os.environ.get("DJANGO_SUPERUSER_PASSWORD")
    username = os.environ.get("DJANGO_SUPERUSER_USERNAME", "admin")

    if not password:
        return  # skip silently if no password set

    if not User.objects.filter(email=email).exists():
        User.objects.create(
            email=email,
            username=username,
            password=make_password(password),
            role="admin",
            is_staff=True,
            is_superuser=True,
        )


class Migration(migrations.Migration):

    dependencies = [
        ("authentication", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(create_superuser, migrations.RunPython.noop),
    ]
