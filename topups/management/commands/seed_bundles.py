from decimal import Decimal

from django.core.management.base import BaseCommand

from topups.models import Bundle, Provider

SAMPLE_BUNDLES = [
    # (plan_id, provider, plan_type, name, price, cost_price, data_amount, validity, available)
    ("1001", Provider.MTN, "SME", "1.5GB SME Monthly", "1000", "950", "1.5GB", "30 Days", True),
    ("1002", Provider.MTN, "SME", "2GB SME Weekly", "500", "470", "2GB", "7 Days", False),
    ("1003", Provider.MTN, "CORPORATE", "10GB Corporate", "3000", "2800", "10GB", "30 Days", True),
    ("1004", Provider.MTN, "GIFTING", "5GB Gifting", "2500", "2400", "5GB", "30 Days", True),
    ("2001", Provider.GLO, "GIFTING", "1.8GB Monthly", "1000", "900", "1.8GB", "30 Days", True),
    ("2002", Provider.GLO, "CORPORATE", "7GB Monthly", "2500", "2350", "7GB", "30 Days", True),
    ("3001", Provider.AIRTEL, "CORPORATE", "1.5GB Corporate", "1000", "960", "1.5GB", "30 Days", True),
    ("3002", Provider.AIRTEL, "GIFTING", "4.5GB Gifting", "2000", "1900", "4.5GB", "30 Days", True),
    ("4001", Provider.NINE_MOBILE, "SME", "1.5GB SME", "1000", "920", "1.5GB", "30 Days", True),
]


class Command(BaseCommand):
    help = "Loads the sample data plan catalog (idempotent on plan_id)"

    def handle(self, *args, **options):
        created = 0
        for plan_id, provider, plan_type, name, price, cost, volume, validity, available in SAMPLE_BUNDLES:
            _, was_created = Bundle.objects.update_or_create(
                plan_id=plan_id,
                defaults={
                    "provider": provider,
                    "plan_type": plan_type,
                    "name": name,
                    "price": Decimal(price),
                    "cost_price": Decimal(cost),
                    "data_amount": volume,
                    "validity": validity,
                    "is_available": available,
                },
            )
            created += int(was_created)
        self.stdout.write(
            self.style.SUCCESS(
                f"Bundles seeded: {created} created, {len(SAMPLE_BUNDLES) - created} updated."
            )
        )
