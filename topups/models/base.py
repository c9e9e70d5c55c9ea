from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model providing created_at / updated_at tracking.

    Accounts, bundles and ledger entries all inherit from it so listings can be
    ordered newest-first without repeating the Meta on every model.
    """

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]
