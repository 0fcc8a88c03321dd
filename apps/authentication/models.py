from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_CHOICES = [
        ("staff", "Staff"),
        ("manager", "Manager"),
        ("admin", "Admin"),
    ]

    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="staff")
    chain = models.ForeignKey("chains.RestaurantChain", null=True, blank=True, related_name="users", on_delete=models.SET_NULL)
    location = models.ForeignKey("chains.Location", null=True, blank=True, related_name="users", on_delete=models.SET_NULL)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    class Meta:
        db_table = "users"

    def can_manage_chain(self, chain_id) -> bool:
        """Managers and admins may change sync state of their own chain"""
        if self.is_superuser:
            return True
        return self.role in ("manager", "admin") and self.chain_id is not None and str(self.chain_id) == str(chain_id)

    def can_view_chain(self, chain_id) -> bool:
        return self.is_superuser or (self.chain_id is not None and str(self.chain_id) == str(chain_id))
