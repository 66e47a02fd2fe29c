from __future__ import annotations

from decimal import Decimal, InvalidOperation

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from modules.accounts.models import UserProfile
from modules.core.authorization import Role
from modules.rates.models import ExchangeRate


class Command(BaseCommand):
    help = (
        "Promote the first admin (no admin exists yet to call setAdminRole) "
        "and optionally seed the exchange rate."
    )

    def add_arguments(self, parser):
        parser.add_argument("uid", help="Identity id (local user pk or Auth0 sub).")
        parser.add_argument("--full-name", default="")
        parser.add_argument("--email", default="")
        parser.add_argument(
            "--rate", default=None, help="Initial CLP→VES multiplier, e.g. 36.5"
        )

    def handle(self, *args, **options):
        uid = options["uid"].strip()
        if not uid:
            raise CommandError("uid must not be blank.")

        rate = self._parse_rate(options["rate"])

        with transaction.atomic():
            defaults = {"role": Role.ADMIN}
            if options["full_name"]:
                defaults["full_name"] = options["full_name"]
            if options["email"]:
                defaults["email"] = options["email"]
            profile, created = UserProfile.objects.update_or_create(
                uid=uid, defaults=defaults
            )
            if rate is not None:
                ExchangeRate.objects.update_or_create(
                    pk=ExchangeRate.SINGLETON_ID,
                    defaults={
                        "clp_to_ves": rate,
                        "updated_by": uid,
                        "updated_by_name": profile.full_name or uid,
                    },
                )

        self.stdout.write(
            self.style.SUCCESS(
                f"Admin ready: uid={uid}, created={created}"
                + (f", rate={rate}" if rate is not None else "")
            )
        )

    def _parse_rate(self, raw: str | None) -> Decimal | None:
        if raw is None:
            return None
        try:
            rate = Decimal(raw)
        except InvalidOperation as exc:
            raise CommandError(f"Invalid rate: {raw}") from exc
        if not rate.is_finite() or rate <= 0:
            raise CommandError("Rate must be greater than zero.")
        return rate
