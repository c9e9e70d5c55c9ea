from django.db import models


class VendorConnection(models.Model):
    """Last successful round trip per vendor, shown on the admin settings page."""

    vendor = models.CharField(max_length=20, unique=True)
    last_success_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.vendor} (last_success_at={self.last_success_at})"
