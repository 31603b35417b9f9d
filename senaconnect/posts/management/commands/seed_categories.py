from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.translation import gettext as _

from senaconnect.posts.models import Category

POST_CATEGORIES = (
    ("Tecnología", "Charlas, workshops y actividades tecnológicas"),
    ("Viajes", ""),
    ("Fitness", ""),
    ("Comida", ""),
    ("Educación", ""),
)

EVENT_CATEGORIES = (
    ("Conciertos", "Eventos musicales y presentaciones en vivo"),
    ("Talleres", "Actividades educativas y formativas"),
    ("Deportes", "Eventos y actividades deportivas"),
    ("Arte y Cultura", "Eventos culturales, arte y exposiciones"),
)


class Command(BaseCommand):
    help = _("Create the default post and event categories (idempotent)")

    def add_arguments(self, parser):
        parser.add_argument(
            "--only",
            choices=["posts", "events"],
            help="Seed only one group of categories.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        groups = {"posts": POST_CATEGORIES, "events": EVENT_CATEGORIES}
        if options.get("only"):
            groups = {options["only"]: groups[options["only"]]}

        created = 0
        for label, categories in groups.items():
            for name, description in categories:
                _category, was_created = Category.objects.get_or_create(
                    name=name,
                    defaults={"description": description},
                )
                if was_created:
                    created += 1
                    self.stdout.write(f"Created {label} category: {name}")
                else:
                    self.stdout.write(f"Already exists: {name}")

        self.stdout.write(self.style.SUCCESS(f"Categories seeded ({created} new)"))
