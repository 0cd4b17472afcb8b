"""FilterSet for the public business listing."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import Business


class BusinessFilterSet(django_filters.FilterSet):
    city = django_filters.CharFilter(field_name="city", lookup_expr="icontains")
    state = django_filters.CharFilter(field_name="state", lookup_expr="iexact")
    category = django_filters.ChoiceFilter(choices=Business.Category.choices)
    verified = django_filters.BooleanFilter(field_name="is_verified")

    class Meta:
        model = Business
        fields = ["city", "state", "category", "verified"]
