"""
Salon Store - App Configuration
===============================
Relational persistence for catalog, bookings, service instances,
vouchers, gift certificates and commissions.
"""

from django.apps import AppConfig


class SalonStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "adapters.django_store"
    label = "salon_store"
    verbose_name = "Salon Store"
